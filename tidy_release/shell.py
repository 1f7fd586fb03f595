"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running shell commands
and git/gh operations, plus output formatting helpers. Non-zero exits are
raised as ExternalToolError so the workflows can report the failing step.
"""

from __future__ import annotations

import subprocess
import sys

from .errors import ExternalToolError


def _capture(cmd: list[str], check: bool) -> str:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=check)
    except FileNotFoundError as exc:
        raise ExternalToolError(
            f"{cmd[0]} is not installed or not on PATH", command=cmd
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise ExternalToolError(
            f"`{' '.join(cmd)}` exited with {exc.returncode}"
            + (f": {stderr}" if stderr else ""),
            command=cmd,
            returncode=exc.returncode,
            stderr=stderr,
        ) from exc
    return result.stdout.strip()


def git(*args: str, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).

    Returns:
        Stripped stdout from the git command.

    Raises:
        ExternalToolError: If check is True and git exits non-zero.
    """
    return _capture(["git", *args], check)


def gh(*args: str, check: bool = True) -> str:
    """Run a GitHub CLI command and return stdout."""
    return _capture(["gh", *args], check)


def run(*args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see build and upload progress.

    Args:
        *args: Command and arguments (e.g., "uv", "build", "--all-packages").
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    try:
        result = subprocess.run(args, check=False)
    except FileNotFoundError as exc:
        raise ExternalToolError(
            f"{args[0]} is not installed or not on PATH", command=list(args)
        ) from exc
    if check and result.returncode != 0:
        raise ExternalToolError(
            f"`{' '.join(args)}` exited with {result.returncode}",
            command=list(args),
            returncode=result.returncode,
        )
    return result


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release workflows in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the pipeline.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
