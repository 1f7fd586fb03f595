"""CLI entry point for tidy-release."""

from __future__ import annotations

import sys
from collections.abc import Callable
from contextlib import redirect_stdout
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import TypeVar

import click

from tidy_release.errors import ReleaseError
from tidy_release.models import ReleasePlan, WorkflowResult
from tidy_release.pipeline import plan_release, run_publish, run_release_pr
from tidy_release.shell import fatal

__version__ = pkg_version("tidy-release")
TEMPLATES_DIR = Path(__file__).parent / "templates"
WORKFLOW_TEMPLATES = ("release.yml", "release-pr.yml")

T = TypeVar("T")


def _version_range() -> str:
    """Compute pip version range: >=current,<next_minor."""
    v = __version__
    major, minor, *_ = v.split(".")
    return f'"tidy-release>={v},<{major}.{int(minor) + 1}.0"'


def _guarded(fn: Callable[[Path], T], root: Path) -> T:
    """Run fn, turning any ReleaseError into `ERROR: ...` and exit code 1."""
    try:
        return fn(root)
    except ReleaseError as exc:
        fatal(str(exc))
        raise  # unreachable: fatal exits


def _plan(root: Path) -> ReleasePlan:
    # Progress goes to stderr so stdout carries only the answer.
    with redirect_stdout(sys.stderr):
        return _guarded(plan_release, root)


def _report(result: WorkflowResult) -> None:
    label = "Done" if result.status == "completed" else "Nothing to do"
    click.echo(f"\n{'=' * 60}\n{label}: {result.reason}")
    if result.url:
        click.echo(result.url)
    click.echo("=" * 60)


@click.group()
@click.version_option(__version__, prog_name="tidy-release")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root (directory holding the root pyproject.toml).",
)
@click.pass_context
def cli(ctx: click.Context, root: Path) -> None:
    """Commit-driven semantic releases for uv workspaces."""
    ctx.obj = root.resolve()


@cli.command()
@click.pass_obj
def propose(root: Path) -> None:
    """Open a pull request that bumps versions and updates the changelog."""
    _report(_guarded(run_release_pr, root))


@cli.command()
@click.pass_obj
def publish(root: Path) -> None:
    """Publish the merged version to the registry and create the release."""
    _report(_guarded(run_publish, root))


@cli.command()
@click.pass_obj
def level(root: Path) -> None:
    """Print the release level of commits since the last tag."""
    click.echo(_plan(root).bump.level.value)


@cli.command()
@click.pass_obj
def changes(root: Path) -> None:
    """List commits since the last tag with their classification."""
    plan = _plan(root)
    click.echo(f"Since {plan.last_tag or 'the first commit'}:")
    for commit in reversed(plan.commits):
        click.echo(f"  {commit.short_sha} {commit.kind.value:<8} {commit.subject}")


@cli.command("next-version")
@click.pass_obj
def next_version(root: Path) -> None:
    """Print the version a release would produce (current if none)."""
    click.echo(_plan(root).bump.new)


@cli.command()
@click.option(
    "--workflow-dir",
    type=click.Path(path_type=Path),
    default=Path(".github/workflows"),
    show_default=True,
    help="Directory to write the workflow files.",
)
@click.option("--force", is_flag=True, help="Overwrite existing workflow files.")
@click.pass_obj
def init(root: Path, workflow_dir: Path, force: bool) -> None:
    """Scaffold the GitHub Actions workflows into your repo."""
    # Sanity checks
    if not (root / ".git").exists():
        raise click.ClickException("Not a git repository. Run from the repo root.")
    if not (root / "pyproject.toml").exists():
        raise click.ClickException("No pyproject.toml found in current directory.")

    dest_dir = root / workflow_dir
    targets = [dest_dir / name for name in WORKFLOW_TEMPLATES]
    existing = [t for t in targets if t.exists()]
    if existing and not force:
        names = ", ".join(str(t.relative_to(root)) for t in existing)
        raise click.ClickException(f"{names} already exists (use --force)")

    dest_dir.mkdir(parents=True, exist_ok=True)
    for name, dest in zip(WORKFLOW_TEMPLATES, targets):
        rendered = (TEMPLATES_DIR / name).read_text()
        # Pin tidy-release version range
        rendered = rendered.replace("__TIDY_RELEASE_VERSION__", _version_range())
        dest.write_text(rendered)
        click.echo(f"✓ Wrote workflow to {dest.relative_to(root)}")

    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Commit and push the workflow files")
    click.echo("  2. Propose a release:")
    click.echo("       gh workflow run release-pr.yml")
    click.echo("  3. Merge the release PR; the push to main publishes it")
