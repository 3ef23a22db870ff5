"""Exceptions raised while launching or running a recording session."""

from __future__ import annotations

from pathlib import Path


class ScriptError(Exception):
    """Base class for failures that end a session with exit code 1."""


class SetupError(ScriptError):
    """A session could not be started (terminal, PTY, or fork failure)."""


class SinkOpenError(SetupError):
    """A log sink could not be opened."""

    def __init__(self, label: str, path: Path, cause: Exception | str) -> None:
        self.label = label
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to open {label}: {cause}")


class RefusedUnsafeTarget(SinkOpenError):
    """The transcript path is a link and neither append nor force was given."""

    def __init__(self, label: str, path: Path, reason: str) -> None:
        super().__init__(label, path, f"refusing to output to {reason}")


class UnsupportedPlatformError(ScriptError):
    """No pseudo-terminal support on this platform."""


class RelayError(ScriptError):
    """The I/O loop hit a failure it cannot continue past."""
