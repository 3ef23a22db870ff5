"""PTY backend capability — platform selection for session launching.

The launcher talks to a ``PtyBackend`` only. ``get_backend()`` returns the
POSIX implementation where ``termios`` and ``fork`` exist and an
``UnsupportedBackend`` everywhere else, which fails before any file is
touched.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ptyscript.config import EchoMode
from ptyscript.errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "`ptyscript` is unavailable on non-UNIX-like platforms."


@dataclass(frozen=True)
class TerminalMode:
    """Snapshot of the caller's terminal attributes (``tcgetattr`` list)."""

    attrs: tuple


@dataclass
class PtyPair:
    """Master and slave descriptors of one pseudo-terminal."""

    master_fd: int
    slave_fd: int

    def close_master(self) -> None:
        self.master_fd = _close_fd(self.master_fd)

    def close_slave(self) -> None:
        self.slave_fd = _close_fd(self.slave_fd)

    def close(self) -> None:
        self.close_slave()
        self.close_master()


def _close_fd(fd: int) -> int:
    if fd >= 0:
        try:
            os.close(fd)
        except OSError as e:
            logger.debug("close(%d) failed: %s", fd, e)
    return -1


def decode_wait_status(status: int) -> int | None:
    """Exit code for a ``waitpid`` status; 128 + signal for a killed child."""
    if os.WIFEXITED(status):
        return os.WEXITSTATUS(status)
    if os.WIFSIGNALED(status):
        return 128 + os.WTERMSIG(status)
    return None


@dataclass
class ChildHandle:
    """The spawned child process, as seen from the parent."""

    pid: int
    argv: list[str] = field(default_factory=list)
    returncode: int | None = field(default=None, init=False)

    def poll(self) -> int | None:
        """Non-blocking status check. Returns the exit status once known."""
        if self.returncode is not None:
            return self.returncode
        try:
            pid, status = os.waitpid(self.pid, os.WNOHANG)
        except ChildProcessError:
            logger.debug("Child %d already reaped elsewhere", self.pid)
            return None
        except InterruptedError:
            return None
        if pid == 0:
            return None
        self.returncode = decode_wait_status(status)
        if self.returncode is not None:
            logger.debug("Child %d exited (code=%d)", self.pid, self.returncode)
        return self.returncode

    def wait(self, timeout: float, interval: float = 0.05) -> int | None:
        """Poll until the child exits or ``timeout`` seconds pass."""
        deadline = time.monotonic() + timeout
        while True:
            code = self.poll()
            if code is not None or time.monotonic() >= deadline:
                return code
            time.sleep(interval)

    def terminate(self) -> None:
        """Send SIGTERM unless the child is already known to be gone."""
        if self.returncode is not None:
            return
        try:
            os.kill(self.pid, signal.SIGTERM)
            logger.debug("Sent SIGTERM to child %d", self.pid)
        except ProcessLookupError:
            logger.debug("Child %d already gone", self.pid)


@runtime_checkable
class PtyBackend(Protocol):
    """What the launcher needs from the platform."""

    name: str

    def ensure_available(self) -> None: ...

    def capture_mode(self, fd: int) -> TerminalMode | None: ...

    def open_pair(self) -> PtyPair: ...

    def copy_window_size(self, src_fd: int, pair: PtyPair) -> bool: ...

    def apply_echo(
        self, pair: PtyPair, mode: TerminalMode | None, policy: EchoMode
    ) -> bool: ...

    def spawn(self, pair: PtyPair, command: str | None) -> ChildHandle: ...


class UnsupportedBackend:
    """Backend for platforms without pseudo-terminals. Every call fails."""

    name = "unsupported"

    def ensure_available(self) -> None:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)

    def capture_mode(self, fd: int) -> TerminalMode | None:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)

    def open_pair(self) -> PtyPair:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)

    def copy_window_size(self, src_fd: int, pair: PtyPair) -> bool:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)

    def apply_echo(
        self, pair: PtyPair, mode: TerminalMode | None, policy: EchoMode
    ) -> bool:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)

    def spawn(self, pair: PtyPair, command: str | None) -> ChildHandle:
        raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)


def get_backend() -> PtyBackend:
    """Pick the backend for the running platform."""
    if os.name == "posix":
        from ptyscript.pty.posix import PosixPtyBackend

        return PosixPtyBackend()
    return UnsupportedBackend()
