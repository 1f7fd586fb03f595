"""Commit history inspection and classification.

Reads the commits made since the last release tag and classifies each one
as a feature, fix, breaking change, or other. Classification follows a
configurable conventional-commit grammar:

    type(scope)!: description

    optional body

    BREAKING CHANGE: footer

A "!" before the colon or a breaking-change footer makes the commit
breaking. Messages that don't match the header grammar are "other" and
never trigger a release.
"""

from __future__ import annotations

import re
from typing import Protocol

import semver

from .config import ReleaseConfig
from .errors import RepositoryStateError
from .models import CommitKind, CommitRecord
from .shell import git
from .versions import tag_version

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)(?:\((?P<scope>[^()]*)\))?(?P<bang>!)?:\s*(?P<desc>.+)$"
)

# Field and record separators for `git log --format`
_FS = "\x1f"
_RS = "\x1e"


class CommitGrammar:
    """Maps commit messages to CommitKind.

    Args:
        feature_types: Header types that mean a new feature (minor bump).
        fix_types: Header types that mean a bug fix (patch bump).
        breaking_tokens: Footer tokens that mark a breaking change.
    """

    def __init__(
        self,
        feature_types: list[str],
        fix_types: list[str],
        breaking_tokens: list[str],
    ) -> None:
        self.feature_types = {t.lower() for t in feature_types}
        self.fix_types = {t.lower() for t in fix_types}
        self._footer_re = (
            re.compile(
                "^(?:" + "|".join(re.escape(t) for t in breaking_tokens) + "):",
                re.MULTILINE,
            )
            if breaking_tokens
            else None
        )

    @classmethod
    def from_config(cls, config: ReleaseConfig) -> CommitGrammar:
        return cls(config.feature_types, config.fix_types, config.breaking_tokens)

    def parse(self, sha: str, subject: str, body: str = "") -> CommitRecord:
        """Build a classified CommitRecord from raw commit fields."""
        match = _HEADER_RE.match(subject.strip())
        if not match:
            return CommitRecord(
                sha=sha, subject=subject, body=body, description=subject.strip()
            )

        ctype = match.group("type").lower()
        if match.group("bang") or (self._footer_re and self._footer_re.search(body)):
            kind = CommitKind.BREAKING
        elif ctype in self.feature_types:
            kind = CommitKind.FEATURE
        elif ctype in self.fix_types:
            kind = CommitKind.FIX
        else:
            kind = CommitKind.OTHER

        scope = match.group("scope")
        return CommitRecord(
            sha=sha,
            subject=subject,
            body=body,
            kind=kind,
            scope=scope.strip() if scope else None,
            description=match.group("desc").strip(),
        )

    def classify(self, message: str) -> CommitKind:
        """Classify a full commit message (subject plus optional body)."""
        subject, _, body = message.partition("\n")
        return self.parse("", subject, body.strip()).kind


class CommitHistorySource(Protocol):
    """Where commit history comes from. GitHistory is the git backend."""

    def ensure_full_history(self) -> None: ...

    def last_release_tag(self, ref: str = "HEAD") -> str | None: ...

    def commits_since(
        self, tag: str | None, until: str = "HEAD"
    ) -> list[CommitRecord]: ...

    def tag_exists(self, tag: str) -> bool: ...


class GitHistory:
    """CommitHistorySource backed by the git CLI in the current directory."""

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config
        self.grammar = CommitGrammar.from_config(config)

    def ensure_full_history(self) -> None:
        """Reject anything but a complete (non-shallow) git checkout.

        Raises:
            RepositoryStateError: If cwd is not a git work tree or is shallow.
        """
        if git("rev-parse", "--is-inside-work-tree", check=False) != "true":
            raise RepositoryStateError("Not a git repository. Run from the repo root.")
        if git("rev-parse", "--is-shallow-repository") == "true":
            raise RepositoryStateError(
                "Repository is a shallow clone; full history is required "
                "(fetch with `git fetch --unshallow` or checkout fetch-depth: 0)"
            )

    def last_release_tag(self, ref: str = "HEAD") -> str | None:
        """Find the highest release tag reachable from ref.

        Tags are ordered by semantic version, so v1.10.0 beats v1.9.0 and
        v2.0.0 beats v2.0.0-rc.1. Tags that carry the prefix but don't name
        a version are ignored. Returns None if no release tag has been
        merged into ref yet.
        """
        prefix = self.config.tag_prefix
        tags = git("tag", "--merged", ref, "--list", f"{prefix}*", check=False)
        latest: tuple[semver.Version, str] | None = None
        for tag in tags.splitlines():
            version = tag_version(tag, prefix)
            if version is not None and (latest is None or version > latest[0]):
                latest = (version, tag)
        return latest[1] if latest else None

    def commits_since(
        self, tag: str | None, until: str = "HEAD"
    ) -> list[CommitRecord]:
        """Return classified commits in (tag, until], oldest first.

        With no tag the whole history of until is returned. An empty
        repository (no commits yet) yields an empty list.
        """
        if not git("rev-parse", "--verify", "-q", until, check=False):
            return []
        rev_range = f"{tag}..{until}" if tag else until
        out = git(
            "log", "--reverse", f"--format=%H{_FS}%s{_FS}%b{_RS}", rev_range
        )
        commits: list[CommitRecord] = []
        for block in out.split(_RS):
            block = block.strip()
            if not block:
                continue
            sha, subject, body = (block.split(_FS) + ["", ""])[:3]
            commits.append(self.grammar.parse(sha, subject, body.strip()))
        return commits

    def tag_exists(self, tag: str) -> bool:
        """Check for tag locally, then on the configured remote.

        A tag found only on the remote is fetched so later lookups that
        resolve it (e.g. commits_since(..., until=tag)) work.
        """
        if git("rev-parse", "-q", "--verify", f"refs/tags/{tag}", check=False):
            return True
        remote = git(
            "ls-remote", "--tags", self.config.remote, f"refs/tags/{tag}", check=False
        )
        if not remote:
            return False
        refspec = f"refs/tags/{tag}:refs/tags/{tag}"
        git("fetch", "--no-tags", self.config.remote, refspec)
        return True
