"""Release configuration.

Settings live in the [tool.tidy-release] table of the workspace root
pyproject.toml. Keys use the TOML kebab-case spelling; every key is
optional.

Example:

    [tool.tidy-release]
    tag-prefix = "v"
    base-branch = "main"
    changelog = "CHANGELOG.md"
    feature-types = ["feat"]
    fix-types = ["fix", "perf"]
    check-url = "https://pypi.org/simple/"
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import RepositoryStateError
from .toml import get_tool_table, load_pyproject

TOOL_NAME = "tidy-release"


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class ReleaseConfig(BaseModel):
    """Settings shared by both release workflows.

    Attributes:
        tag_prefix: Prefix for release tags; the tag for 1.2.3 is "v1.2.3".
        base_branch: Branch release PRs target.
        branch_prefix: Prefix for release PR branches. An open PR from any
            branch under it blocks a new proposal.
        remote: Git remote that tags and branches are pushed to.
        changelog: Changelog path, relative to the workspace root.
        bot_name: Author/committer name for release commits.
        bot_email: Author/committer email for release commits.
        feature_types: Commit types that trigger a minor release.
        fix_types: Commit types that trigger a patch release.
        breaking_tokens: Body footer tokens that mark a breaking change.
        publish_url: Upload endpoint passed to `uv publish`.
        check_url: Index `uv publish` checks to skip files already uploaded.
    """

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid", frozen=True
    )

    tag_prefix: str = "v"
    base_branch: str = "main"
    branch_prefix: str = "release/"
    remote: str = "origin"
    changelog: str = "CHANGELOG.md"
    bot_name: str = "Release Automation"
    bot_email: str = "release-bot@users.noreply.github.com"
    feature_types: list[str] = Field(default_factory=lambda: ["feat"])
    fix_types: list[str] = Field(default_factory=lambda: ["fix", "perf"])
    breaking_tokens: list[str] = Field(
        default_factory=lambda: ["BREAKING CHANGE", "BREAKING-CHANGE"]
    )
    publish_url: str | None = None
    check_url: str | None = None

    def tag_for(self, version: str) -> str:
        return f"{self.tag_prefix}{version}"

    def branch_for(self, version: str) -> str:
        return f"{self.branch_prefix}{self.tag_for(version)}"


def load_config(root: Path) -> ReleaseConfig:
    """Load [tool.tidy-release] from root/pyproject.toml.

    Raises:
        RepositoryStateError: If the root manifest is missing or the table
            holds unknown keys or values of the wrong type.
    """
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        raise RepositoryStateError(f"No pyproject.toml found in {root}")
    table = get_tool_table(load_pyproject(pyproject), TOOL_NAME)
    try:
        return ReleaseConfig.model_validate(table)
    except ValidationError as exc:
        raise RepositoryStateError(
            f"Invalid [tool.{TOOL_NAME}] configuration:\n{exc}"
        ) from exc
