"""Error taxonomy for the release workflows.

Every failure a workflow can surface derives from ReleaseError. The CLI is
the only place these are turned into exit codes; the workflows themselves
propagate them unchanged, after recording which step was running.
"""

from __future__ import annotations


class ReleaseError(Exception):
    """Base class for all release failures.

    Attributes:
        step: Name of the workflow step that was running when the error was
              raised. Filled in by the pipeline's stage() context.
    """

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step

    def __str__(self) -> str:
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message


class RepositoryStateError(ReleaseError):
    """The working tree is unusable: not a repo, shallow, dirty, or misowned."""


class ManifestWriteError(ReleaseError):
    """A manifest could not be read, agreed upon, or rewritten."""


class ExternalToolError(ReleaseError):
    """An external command (git, gh, uv) exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
        step: str | None = None,
    ) -> None:
        super().__init__(message, step=step)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class ResolutionNoop(ReleaseError):
    """Nothing to release. Not a failure: workflows turn it into a no-op."""
