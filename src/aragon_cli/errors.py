"""Exceptions raised by the CLI.

A failure in any step aborts the remaining sequence; the message is reported
verbatim to the console by the entry point.
"""

from __future__ import annotations

from pathlib import Path


class AragonCliError(RuntimeError):
    """Base class for errors with a message meant for the console."""


class ProjectNotFound(AragonCliError):
    def __init__(self, start: Path) -> None:
        super().__init__(f"No arapp.json found in {start} or any of its parent directories")
        self.start = start


class ManifestError(AragonCliError):
    pass


class ArtifactNotFound(AragonCliError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Contract artifact not found: {path}")
        self.path = path


class IpfsNotInstalled(AragonCliError):
    pass


class DaoNotFound(AragonCliError):
    pass


class StepFailed(AragonCliError):
    """Raised by the step runner when a step's task raises."""

    def __init__(self, title: str, cause: BaseException) -> None:
        super().__init__(str(cause) or type(cause).__name__)
        self.title = title
        self.cause = cause
