"""Log sinks — transcript, input/output/combined logs and the timing log."""

from __future__ import annotations

import enum
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ptyscript.config import LogFormat, SessionConfig
from ptyscript.errors import RefusedUnsafeTarget, SinkOpenError

logger = logging.getLogger(__name__)


class SinkRole(enum.Enum):
    """Which stream a sink records."""

    TRANSCRIPT = "transcript"
    INPUT = "input-log"
    OUTPUT = "output-log"
    COMBINED = "combined-log"
    TIMING = "timing-log"


# Human-readable names used in diagnostics.
_LABELS: dict[SinkRole, str] = {
    SinkRole.TRANSCRIPT: "output file",
    SinkRole.INPUT: "input log file",
    SinkRole.OUTPUT: "output log file",
    SinkRole.COMBINED: "I/O log file",
    SinkRole.TIMING: "timing log file",
}

# Optional sinks and the SessionConfig field naming their path.
_OPTIONAL_SINKS: tuple[tuple[SinkRole, str], ...] = (
    (SinkRole.INPUT, "log_in"),
    (SinkRole.OUTPUT, "log_out"),
    (SinkRole.COMBINED, "log_io"),
    (SinkRole.TIMING, "log_timing"),
)


class Direction(enum.Enum):
    INPUT = "I"
    OUTPUT = "O"


@dataclass(frozen=True)
class TimingRecord:
    """One relayed chunk: direction, seconds since the previous chunk, size."""

    direction: Direction
    elapsed: float
    nbytes: int

    def format(self, log_format: LogFormat) -> str:
        """Render as a timing-log line.

        classic:  ``0.001234 42``
        advanced: ``O 0.001234 42``
        """
        line = f"{self.elapsed:.6f} {self.nbytes}\n"
        if log_format is LogFormat.ADVANCED:
            return f"{self.direction.value} {line}"
        return line


def open_output_file(path: Path, append: bool, force: bool) -> BinaryIO:
    """Open a sink for binary writing.

    Unless ``append`` or ``force`` is set, a path that is a symbolic link or
    has more than one hard link is refused so a stray ``typescript`` link
    cannot clobber some other file.

    Raises:
        RefusedUnsafeTarget: The link guard tripped.
        OSError: The file could not be opened.
    """
    path = Path(path)
    if not force and not append:
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            st = None
        if st is not None:
            if stat.S_ISLNK(st.st_mode):
                raise RefusedUnsafeTarget(
                    _LABELS[SinkRole.TRANSCRIPT], path, "a symbolic link"
                )
            if st.st_nlink > 1:
                raise RefusedUnsafeTarget(
                    _LABELS[SinkRole.TRANSCRIPT], path, "a file with multiple links"
                )
    return open(path, "ab" if append else "wb")


class LogFileSet:
    """The open sinks of one session, keyed by role.

    Write and flush failures are logged and counted in ``write_errors``;
    the session keeps running. Only opening fails hard.
    """

    def __init__(
        self,
        files: dict[SinkRole, BinaryIO],
        log_format: LogFormat = LogFormat.CLASSIC,
        flush_every_write: bool = False,
    ) -> None:
        if SinkRole.TRANSCRIPT not in files:
            raise ValueError("A transcript sink is required")
        self._files = files
        self._log_format = log_format
        self._flush_every_write = flush_every_write
        self.write_errors = 0

    @classmethod
    def open(cls, config: SessionConfig) -> LogFileSet:
        """Open the transcript and every configured optional sink.

        On any failure the sinks opened so far are closed before raising.
        """
        files: dict[SinkRole, BinaryIO] = {}
        try:
            files[SinkRole.TRANSCRIPT] = _open_role(
                SinkRole.TRANSCRIPT, config.transcript, config.append, config.force
            )
            for role, attr in _OPTIONAL_SINKS:
                path = getattr(config, attr)
                if path is not None:
                    # Explicitly named by the operator, so no link guard.
                    files[role] = _open_role(role, path, config.append, force=True)
        except BaseException:
            for f in files.values():
                f.close()
            raise
        logger.debug("Opened sinks: %s", ", ".join(r.value for r in files))
        return cls(
            files,
            log_format=config.logging_format,
            flush_every_write=config.flush,
        )

    def __contains__(self, role: SinkRole) -> bool:
        return role in self._files

    def __enter__(self) -> LogFileSet:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def roles(self) -> list[SinkRole]:
        return list(self._files)

    def write(self, role: SinkRole, data: bytes) -> None:
        """Write to one sink if it is open."""
        f = self._files.get(role)
        if f is None:
            return
        try:
            f.write(data)
            if self._flush_every_write:
                f.flush()
        except OSError as e:
            self.write_errors += 1
            logger.error("Failed to write to %s: %s", _LABELS[role], e)

    def write_timing(self, record: TimingRecord) -> None:
        if SinkRole.TIMING in self._files:
            self.write(SinkRole.TIMING, record.format(self._log_format).encode())

    def record_input(self, data: bytes, elapsed: float) -> None:
        """Fan out a chunk read from the caller."""
        self.write(SinkRole.INPUT, data)
        self.write(SinkRole.COMBINED, data)
        self.write_timing(TimingRecord(Direction.INPUT, elapsed, len(data)))

    def record_output(self, data: bytes, elapsed: float) -> None:
        """Fan out a chunk read from the child."""
        self.write(SinkRole.TRANSCRIPT, data)
        self.write(SinkRole.OUTPUT, data)
        self.write(SinkRole.COMBINED, data)
        self.write_timing(TimingRecord(Direction.OUTPUT, elapsed, len(data)))

    def flush(self, role: SinkRole) -> None:
        f = self._files.get(role)
        if f is None:
            return
        try:
            f.flush()
        except OSError as e:
            logger.error("Failed to flush %s: %s", _LABELS[role], e)
            self.write_errors += 1

    def flush_all(self) -> None:
        for role in self._files:
            self.flush(role)

    def close(self) -> None:
        """Flush (best effort) and close every sink. Safe to call twice."""
        for role, f in self._files.items():
            if f.closed:
                continue
            try:
                f.close()
            except OSError as e:
                logger.error("Failed to close %s: %s", _LABELS[role], e)


def _open_role(role: SinkRole, path: Path, append: bool, force: bool) -> BinaryIO:
    try:
        return open_output_file(path, append=append, force=force)
    except SinkOpenError:
        raise
    except OSError as e:
        raise SinkOpenError(_LABELS[role], path, e) from e
