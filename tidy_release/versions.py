"""Version parsing, bumping and release-level resolution.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0").
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver
from packaging.version import InvalidVersion, Version

from .models import CommitKind, CommitRecord, ReleaseLevel

# Commit kind → the release level it demands on its own.
KIND_LEVELS = {
    CommitKind.BREAKING: ReleaseLevel.MAJOR,
    CommitKind.FEATURE: ReleaseLevel.MINOR,
    CommitKind.FIX: ReleaseLevel.PATCH,
    CommitKind.OTHER: ReleaseLevel.NONE,
}

_CORE_RE = re.compile(r"^(?P<core>\d+(?:\.\d+){0,2})(?P<rest>[-+].*)?$")


def _from_pep440(version_str: str) -> semver.Version | None:
    """Map a PEP 440 version onto semver, or None if it has no semver form.

    Pre-releases and dev releases become the semver prerelease
    ("2.0.0rc1" → "2.0.0-rc.1", "1.0.0.dev0" → "1.0.0-dev.0"); post
    releases become build metadata ("1.0.0.post1" → "1.0.0+post.1").
    Epochs, local versions and releases with more than three components
    are rejected.
    """
    if not version_str[:1].isdigit():
        return None
    try:
        v = Version(version_str)
    except InvalidVersion:
        return None
    if v.epoch or v.local or len(v.release) > 3:
        return None

    major, minor, patch = (*v.release, 0, 0)[:3]
    pre: list[str] = []
    if v.pre:
        pre += [v.pre[0], str(v.pre[1])]
    if v.dev is not None:
        pre += ["dev", str(v.dev)]
    build = f"post.{v.post}" if v.post is not None else None
    return semver.Version(major, minor, patch, ".".join(pre) or None, build)


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1+build.5" → unchanged

    PEP 440 spellings that semver can't express directly, such as
    "2.0.0rc1", are mapped onto semver (see _from_pep440).

    Raises:
        ValueError: If the string is neither a semantic version nor a
            PEP 440 version with a semver equivalent.
    """
    version_str = version_str.strip()
    match = _CORE_RE.match(version_str)
    if not match:
        converted = _from_pep440(version_str)
        if converted is None:
            raise ValueError(f"{version_str!r} is not a valid version")
        return converted
    parts = match.group("core").split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts) + (match.group("rest") or ""))


def tag_version(tag: str, prefix: str) -> semver.Version | None:
    """Return the version a release tag names, or None for any other tag.

    A tag is a release tag when it starts with prefix and the remainder
    parses as a version: with prefix "v", "v1.2.0" names 1.2.0 while
    "vendor-sync" is not a release tag.
    """
    if not tag.startswith(prefix):
        return None
    try:
        return parse_version(tag[len(prefix) :])
    except ValueError:
        return None


def bump_version(version_str: str, level: ReleaseLevel) -> str:
    """Return the version that follows version_str at the given level.

    The field named by the level is incremented and every lower-order field
    is zeroed. Build metadata is dropped. NONE returns the
    version unchanged (normalized to three components).

    A prerelease is a candidate for its own release, so when that release
    already satisfies the level it is finalized instead of skipped past:
    "1.2.3-rc.1" at PATCH becomes "1.2.3", "2.0.0-rc.1" at any level becomes
    "2.0.0", but "1.2.3-rc.1" at MINOR becomes "1.3.0".

    Examples:
        bump_version("1.4.2", MINOR) → "1.5.0"
        bump_version("0.9.9", MAJOR) → "1.0.0"
        bump_version("1.2", PATCH) → "1.2.1"
    """
    v = parse_version(version_str)
    if level is ReleaseLevel.NONE:
        return str(v)
    base = semver.Version(v.major, v.minor, v.patch)
    if v.prerelease is not None and _finalizes(base, level):
        return str(base)
    if level is ReleaseLevel.MAJOR:
        return str(base.bump_major())
    if level is ReleaseLevel.MINOR:
        return str(base.bump_minor())
    return str(base.bump_patch())


def _finalizes(base: semver.Version, level: ReleaseLevel) -> bool:
    if level is ReleaseLevel.MAJOR:
        return base.minor == 0 and base.patch == 0
    if level is ReleaseLevel.MINOR:
        return base.patch == 0
    return True


def resolve_level(commits: Iterable[CommitRecord]) -> ReleaseLevel:
    """Return the highest release level demanded by any commit.

    A single breaking change forces MAJOR no matter what accompanies it.
    Returns NONE for an empty sequence or one with no releasable commits;
    callers must treat NONE as "do not release".
    """
    level = ReleaseLevel.NONE
    for commit in commits:
        level = max(level, KIND_LEVELS[commit.kind])
        if level is ReleaseLevel.MAJOR:
            break
    return level


def is_prerelease(version_str: str) -> bool:
    return parse_version(version_str).prerelease is not None
