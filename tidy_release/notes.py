"""Release notes rendering.

Notes are grouped by commit kind, newest commit first within each group.
Commits classified as "other" (chores, docs, CI tweaks, unparseable
messages) are left out of the rendered text.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date as Date
from pathlib import Path

from .models import CommitKind, CommitRecord

CHANGELOG_TITLE = "# Changelog"

SECTIONS = (
    (CommitKind.BREAKING, "Breaking Changes"),
    (CommitKind.FEATURE, "Features"),
    (CommitKind.FIX, "Bug Fixes"),
)


def _entry(commit: CommitRecord) -> str:
    scope = f"**{commit.scope}**: " if commit.scope else ""
    text = commit.description or commit.subject
    return f"- {scope}{text} ({commit.short_sha})"


def render_body(commits: Sequence[CommitRecord]) -> str:
    """Render the grouped entries without a version heading.

    This is the text used as a host release body.
    """
    lines: list[str] = []
    for kind, title in SECTIONS:
        entries = [_entry(c) for c in reversed(commits) if c.kind is kind]
        if not entries:
            continue
        if lines:
            lines.append("")
        lines.append(f"### {title}")
        lines.append("")
        lines.extend(entries)

    if not lines:
        return "No notable changes.\n"
    return "\n".join(lines) + "\n"


def render_notes(
    commits: Sequence[CommitRecord], version: str, *, date: Date | None = None
) -> str:
    """Render a changelog section for version.

    Args:
        commits: Commits in the release, oldest first (as returned by
                 CommitHistorySource.commits_since).
        version: Version the section describes.
        date: Release date appended to the heading, if given.
    """
    heading = f"## {version}"
    if date is not None:
        heading += f" ({date.isoformat()})"
    return f"{heading}\n\n{render_body(commits)}"


def prepend_changelog(path: Path, section: str) -> None:
    """Insert section at the top of the changelog, below its title.

    Creates the changelog (with a title) when it does not exist yet.
    """
    if path.exists():
        existing = path.read_text()
    else:
        existing = f"{CHANGELOG_TITLE}\n"

    if existing.startswith(CHANGELOG_TITLE):
        head, _, rest = existing.partition("\n")
        rest = rest.lstrip("\n")
        content = f"{head}\n\n{section.rstrip()}\n"
        if rest:
            content += f"\n{rest}"
    else:
        content = f"{section.rstrip()}\n\n{existing}" if existing else section
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
