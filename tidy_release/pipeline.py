"""Release workflows: propose → publish.

Releasing is split into two phases so a human reviews every version bump:

propose (run_release_pr):
1. Resolve the release level from commits since the last release tag
2. Bump every workspace manifest to the next version
3. Prepend release notes to the changelog
4. Commit on a release branch, push it, open a pull request

publish (run_publish), run on every push to the base branch:
1. Check whether the version in the manifests is already published
2. Re-resolve the release level from commits since the last tag
3. Build, upload, and tag the version (one registry transaction)
4. Create the host release carrying the release notes

Both phases are safe to re-run: when there is nothing new to propose or
publish they halt with a "noop" result instead of failing.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path

import semver

from .config import ReleaseConfig, load_config
from .errors import (
    ManifestWriteError,
    ReleaseError,
    RepositoryStateError,
    ResolutionNoop,
)
from .history import CommitHistorySource, GitHistory
from .manifests import discover_packages, read_workspace_version, update_manifests
from .models import (
    CommitRecord,
    PendingReleasePR,
    ReleaseLevel,
    ReleasePlan,
    VersionBump,
    WorkflowResult,
)
from .notes import prepend_changelog, render_body, render_notes
from .publishers import (
    GitHubHost,
    HostReleasePublisher,
    RegistryPublisher,
    UvRegistryPublisher,
)
from .shell import git, step
from .versions import (
    bump_version,
    is_prerelease,
    parse_version,
    resolve_level,
    tag_version,
)
from .workspace import acquire_workspace


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Print a step header and tag any ReleaseError raised with the step name."""
    step(name)
    try:
        yield
    except ReleaseError as exc:
        if exc.step is None:
            exc.step = name
        raise


def require_release(level: ReleaseLevel, last_tag: str | None) -> None:
    """Raise ResolutionNoop when level says there is nothing to release."""
    if level is ReleaseLevel.NONE:
        since = f"since {last_tag}" if last_tag else "in history"
        raise ResolutionNoop(f"No releasable commits {since}")


def _print_commits(commits: Sequence[CommitRecord]) -> None:
    if not commits:
        print("  <no commits>")
    for commit in commits:
        print(f"  {commit.short_sha} [{commit.kind.value}] {commit.subject}")


def inspect_history(
    history: CommitHistorySource,
) -> tuple[str | None, list[CommitRecord], ReleaseLevel]:
    """Read commits since the last release tag and resolve their level."""
    history.ensure_full_history()
    last_tag = history.last_release_tag()
    print(f"  Last release tag: {last_tag or '<none>'}")
    commits = history.commits_since(last_tag)
    _print_commits(commits)
    level = resolve_level(commits)
    print(f"  Release level: {level.value}")
    return last_tag, commits, level


def _tag_version(tag: str, config: ReleaseConfig) -> semver.Version:
    version = tag_version(tag, config.tag_prefix)
    if version is None:
        raise RepositoryStateError(
            f"Tag {tag} does not name a version "
            f"(expected {config.tag_prefix}<version>)"
        )
    return version


def _pr_body(bump: VersionBump, notes: str, tag: str) -> str:
    return (
        f"Release {tag} ({bump.level.value}: {bump.old} → {bump.new}).\n\n"
        f"{notes}\n"
        f"Merging this pull request publishes {tag} to the package registry "
        "and creates the matching release."
    )


def run_release_pr(
    root: Path | None = None,
    *,
    config: ReleaseConfig | None = None,
    history: CommitHistorySource | None = None,
    host: HostReleasePublisher | None = None,
) -> WorkflowResult:
    """Propose the next release as a pull request.

    Args:
        root: Workspace root (defaults to cwd).
        config: Release settings; loaded from root/pyproject.toml if omitted.
        history: Commit history backend (git by default).
        host: Source-control host backend (GitHub by default).

    Returns:
        A "completed" result with the PR URL, or "noop" when there is
        nothing releasable or the release is already proposed.
    """
    root = (root or Path.cwd()).resolve()
    config = config or load_config(root)
    history = history or GitHistory(config)
    host = host or GitHubHost(config)

    with acquire_workspace(root, config) as workspace:
        try:
            with stage("Resolving release level"):
                last_tag, commits, level = inspect_history(history)
                require_release(level, last_tag)

                packages = discover_packages(root)
                current = read_workspace_version(packages)
                if last_tag and parse_version(current) > _tag_version(
                    last_tag, config
                ):
                    raise ResolutionNoop(
                        f"{config.tag_for(current)} is merged but not yet published"
                    )

                bump = VersionBump(
                    old=current, new=bump_version(current, level), level=level
                )
                tag = config.tag_for(bump.new)
                pending = PendingReleasePR(
                    branch=config.branch_for(bump.new), version=bump.new
                )
                print(f"  Next version: {bump.old} → {bump.new}")

                if history.tag_exists(tag):
                    raise ResolutionNoop(f"{tag} already exists")
                existing = host.find_open_pull_request(config.branch_prefix)
                if existing:
                    raise ResolutionNoop(f"Release PR already open: {existing}")
        except ResolutionNoop as exc:
            print(f"\nNothing to propose: {exc.message}")
            return WorkflowResult(status="noop", reason=exc.message)

        start_ref = workspace.current_ref()
        try:
            with stage("Updating manifests"):
                git("checkout", "-B", pending.branch)
                paths = update_manifests(root, packages, bump.old, bump.new)

            with stage("Generating release notes"):
                section = render_notes(commits, bump.new, date=date.today())
                try:
                    prepend_changelog(root / config.changelog, section)
                except OSError as exc:
                    raise ManifestWriteError(
                        f"Failed to write {config.changelog}: {exc}"
                    ) from exc
                print(f"  Updated {config.changelog}")

            with stage("Committing release"):
                message = f"chore(release): {tag}"
                workspace.commit([*paths, config.changelog], message)

            with stage("Pushing release branch"):
                # The release branch belongs to the bot; a leftover from a
                # failed run is overwritten.
                git(
                    "push", "--force", "--set-upstream", config.remote, pending.branch
                )
        except Exception:
            workspace.abandon_branch(start_ref, pending.branch)
            raise

        with stage("Opening pull request"):
            pending.url = host.open_pull_request(
                pending.branch,
                config.base_branch,
                f"chore(release): {tag}",
                _pr_body(bump, render_body(commits), tag),
            )
            print(f"  {pending.url}")

    return WorkflowResult(
        status="completed",
        reason=f"Proposed {tag}",
        version=bump.new,
        url=pending.url,
    )


def run_publish(
    root: Path | None = None,
    *,
    config: ReleaseConfig | None = None,
    history: CommitHistorySource | None = None,
    registry: RegistryPublisher | None = None,
    host: HostReleasePublisher | None = None,
) -> WorkflowResult:
    """Publish the version recorded in the manifests, if it is unpublished.

    The manifests are presumed bumped by a merged release PR. When their
    version is already tagged and has a host release, the run is a no-op.
    A tag without a host release (a previous run failed after tagging)
    resumes at the host release step.

    Returns:
        A "completed" result with the release URL, or "noop".
    """
    root = (root or Path.cwd()).resolve()
    config = config or load_config(root)
    history = history or GitHistory(config)
    registry = registry or UvRegistryPublisher(config)
    host = host or GitHubHost(config)

    with acquire_workspace(root, config):
        try:
            with stage("Checking for an unpublished release"):
                history.ensure_full_history()
                packages = discover_packages(root)
                version = read_workspace_version(packages)
                tag = config.tag_for(version)
                tagged = history.tag_exists(tag)
                if tagged and host.release_exists(tag):
                    raise ResolutionNoop(f"{tag} is already published")
                state = "tagged, release missing" if tagged else "unpublished"
                print(f"  {tag}: {state}")

            with stage("Resolving release level"):
                if tagged:
                    last_tag = history.last_release_tag(f"{tag}^")
                    commits = history.commits_since(last_tag, until=tag)
                    _print_commits(commits)
                else:
                    last_tag, commits, level = inspect_history(history)
                    require_release(level, last_tag)
                    _check_version_matches(last_tag, level, version, config)
        except ResolutionNoop as exc:
            print(f"\nNothing to publish: {exc.message}")
            return WorkflowResult(status="noop", reason=exc.message)

        if not tagged:
            with stage("Tagging and publishing to the registry"):
                registry.publish(packages, version, tag)

        with stage("Publishing host release"):
            url = host.create_release(
                tag, render_body(commits), latest=not is_prerelease(version)
            )
            print(f"  {url}")

    return WorkflowResult(
        status="completed", reason=f"Published {tag}", version=version, url=url
    )


def _check_version_matches(
    last_tag: str | None, level: ReleaseLevel, version: str, config: ReleaseConfig
) -> None:
    """Ensure the manifest version moved forward from the last release.

    A version at or behind the last tag means the release PR was never
    merged (or was reverted): there is nothing to publish. A version other
    than the one the commits call for is allowed, since manifests are
    authoritative, but reported.
    """
    if last_tag is None:
        return
    previous = _tag_version(last_tag, config)
    if parse_version(version) <= previous:
        raise ResolutionNoop(
            f"Manifest version {version} is not ahead of {last_tag}; "
            "merge a release PR first"
        )
    expected = bump_version(str(previous), level)
    if str(parse_version(version)) != expected:
        print(f"  Note: commits call for {expected}, manifests say {version}")


def plan_release(
    root: Path | None = None,
    *,
    config: ReleaseConfig | None = None,
    history: CommitHistorySource | None = None,
) -> ReleasePlan:
    """Work out what a release would do right now, without changing anything."""
    root = (root or Path.cwd()).resolve()
    config = config or load_config(root)
    history = history or GitHistory(config)
    with acquire_workspace(root, config, require_clean=False):
        last_tag, commits, level = inspect_history(history)
        current = read_workspace_version(discover_packages(root))
    return ReleasePlan(
        last_tag=last_tag,
        commits=commits,
        bump=VersionBump(old=current, new=bump_version(current, level), level=level),
    )
