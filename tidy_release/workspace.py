"""Scoped access to the repository working tree.

Release commits are made from CI containers where the checkout is often
owned by a different user than the one running the job, and where no git
identity is configured. acquire_workspace() fixes both for the duration of
a workflow and puts the process back the way it found it afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from .config import ReleaseConfig
from .errors import RepositoryStateError
from .shell import git

IDENTITY_VARS = (
    "GIT_AUTHOR_NAME",
    "GIT_AUTHOR_EMAIL",
    "GIT_COMMITTER_NAME",
    "GIT_COMMITTER_EMAIL",
)


def normalize_ownership(root: Path) -> int:
    """Make every path under root owned by the effective user.

    Only root can chown; any other user with misowned paths gets an error
    instead, since git refuses to operate on such trees.

    Returns:
        Number of paths whose ownership was changed.

    Raises:
        RepositoryStateError: If paths are misowned and we can't fix them.
    """
    if not hasattr(os, "geteuid"):
        return 0
    uid, gid = os.geteuid(), os.getegid()

    misowned: list[str] = []
    if os.lstat(root).st_uid != uid:
        misowned.append(str(root))
    for dirpath, dirnames, filenames in os.walk(root):
        for name in (*dirnames, *filenames):
            path = os.path.join(dirpath, name)
            if os.lstat(path).st_uid != uid:
                misowned.append(path)

    if not misowned:
        return 0
    if uid != 0:
        raise RepositoryStateError(
            f"{len(misowned)} paths under {root} are not owned by uid {uid} "
            f"(first: {misowned[0]}); run as root or fix ownership"
        )
    for path in misowned:
        os.lchown(path, uid, gid)
    return len(misowned)


class Workspace:
    """Handle on an acquired working tree. Only valid inside acquire_workspace."""

    def __init__(self, root: Path, config: ReleaseConfig) -> None:
        self.root = root
        self.config = config

    def dirty_paths(self) -> set[str]:
        """Paths with staged, unstaged, or untracked changes."""
        changed = git(
            "diff", "--name-only", "--relative", "HEAD", check=False
        ).splitlines()
        untracked = git("ls-files", "--others", "--exclude-standard").splitlines()
        return {p for p in (*changed, *untracked) if p}

    def current_ref(self) -> str:
        """Current branch name, or the commit sha when HEAD is detached."""
        branch = git("rev-parse", "--abbrev-ref", "HEAD")
        return git("rev-parse", "HEAD") if branch == "HEAD" else branch

    def commit(self, paths: Iterable[str], message: str) -> str:
        """Stage exactly paths and commit them as a single commit.

        Raises:
            RepositoryStateError: If anything else in the tree is dirty, or
                if the paths carry no changes.

        Returns:
            The new commit's sha.
        """
        wanted = set(paths)
        unrelated = self.dirty_paths() - wanted
        if unrelated:
            raise RepositoryStateError(
                "Refusing to commit: unrelated changes in the working tree:\n"
                + "\n".join(f"  {p}" for p in sorted(unrelated))
            )

        git("add", "--", *sorted(wanted))
        if not git("diff", "--cached", "--name-only"):
            raise RepositoryStateError("No changes to commit")

        git("commit", "-m", message)
        sha = git("rev-parse", "HEAD")
        print(f"  Committed {sha[:7]}: {message}")
        return sha

    def abandon_branch(self, start_ref: str, branch: str) -> None:
        """Discard a local release branch and return to start_ref.

        Used when a workflow fails before the branch is pushed. The tree was
        clean on acquisition, so anything left over is ours to discard. Errors
        are ignored here so the original failure is what gets reported.
        """
        git("reset", "--hard", check=False)
        git("clean", "-fd", check=False)
        git("checkout", start_ref, check=False)
        git("branch", "-D", branch, check=False)


@contextmanager
def acquire_workspace(
    root: Path, config: ReleaseConfig, *, require_clean: bool = True
) -> Iterator[Workspace]:
    """Acquire a writable, correctly owned working tree at root.

    While acquired, the process runs from root with the release bot as git
    author and committer. The working directory and identity environment
    are restored on every exit path.

    Raises:
        RepositoryStateError: If ownership can't be normalized or, with
            require_clean, if the tree has uncommitted changes.
    """
    prev_cwd = os.getcwd()
    prev_env = {name: os.environ.get(name) for name in IDENTITY_VARS}
    try:
        os.chdir(root)
        fixed = normalize_ownership(root)
        if fixed:
            print(f"  Normalized ownership of {fixed} paths")

        os.environ["GIT_AUTHOR_NAME"] = config.bot_name
        os.environ["GIT_COMMITTER_NAME"] = config.bot_name
        os.environ["GIT_AUTHOR_EMAIL"] = config.bot_email
        os.environ["GIT_COMMITTER_EMAIL"] = config.bot_email

        workspace = Workspace(root, config)
        if require_clean:
            dirty = workspace.dirty_paths()
            if dirty:
                raise RepositoryStateError(
                    "Working tree has uncommitted changes:\n"
                    + "\n".join(f"  {p}" for p in sorted(dirty))
                )
        yield workspace
    finally:
        os.chdir(prev_cwd)
        for name, value in prev_env.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value
