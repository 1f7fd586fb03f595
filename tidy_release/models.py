"""Data models for tidy-release.

These Pydantic models represent the core data structures passed between the
release workflow steps.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ReleaseLevel(str, Enum):
    """How much of the version a release bumps.

    Members compare by rank: NONE < PATCH < MINOR < MAJOR.
    """

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ReleaseLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ReleaseLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ReleaseLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ReleaseLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_RANK = {
    ReleaseLevel.NONE: 0,
    ReleaseLevel.PATCH: 1,
    ReleaseLevel.MINOR: 2,
    ReleaseLevel.MAJOR: 3,
}


class CommitKind(str, Enum):
    """Classification of a single commit."""

    FEATURE = "feature"
    FIX = "fix"
    BREAKING = "breaking"
    OTHER = "other"


class CommitRecord(BaseModel):
    """One commit since the last release tag.

    Attributes:
        sha: Full commit hash.
        subject: First line of the commit message.
        body: Remainder of the message (may be empty).
        kind: Classification used for version resolution and notes.
        scope: Conventional-commit scope, e.g. "api" in "feat(api): ...".
        description: Subject with the type/scope prefix stripped.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    subject: str
    body: str = ""
    kind: CommitKind = CommitKind.OTHER
    scope: str | None = None
    description: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class PackageInfo(BaseModel):
    """Metadata for a single package in the workspace.

    Attributes:
        path: Relative path from workspace root to the package directory
              ("." for the root package).
        version: Current version string from pyproject.toml.
        deps: Internal (workspace) dependency names. External deps are not
              tracked since only internal constraints are rewritten.
    """

    path: str
    version: str
    deps: list[str] = Field(default_factory=list)

    @property
    def manifest(self) -> str:
        if self.path in ("", "."):
            return "pyproject.toml"
        return f"{self.path.rstrip('/')}/pyproject.toml"


class VersionBump(BaseModel):
    """Records a version change for the workspace.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
        level: The release level that produced the change.
    """

    old: str
    new: str
    level: ReleaseLevel


class PendingReleasePR(BaseModel):
    """A proposed release: a pushed branch plus its pull request."""

    branch: str
    version: str
    url: str | None = None


class WorkflowResult(BaseModel):
    """Outcome of a propose or publish run.

    Attributes:
        status: "completed" when something was proposed or published,
                "noop" when the run halted because there was nothing to do.
        reason: Human-readable summary of the outcome.
        version: Version that was proposed or published, if any.
        url: Pull request or release URL, if one was produced.
    """

    status: Literal["completed", "noop"]
    reason: str
    version: str | None = None
    url: str | None = None


class ReleasePlan(BaseModel):
    """What a release would do right now: the input to propose."""

    last_tag: str | None
    commits: list[CommitRecord]
    bump: VersionBump
