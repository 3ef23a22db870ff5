"""POSIX PTY backend — openpty, termios and fork/exec."""

from __future__ import annotations

import logging
import os

from ptyscript.config import EchoMode
from ptyscript.errors import SetupError
from ptyscript.pty.backend import ChildHandle, PtyPair, TerminalMode
from ptyscript.pty.child import exec_child, resolve_command
from ptyscript.pty.terminal import (
    apply_echo,
    capture_mode,
    copy_window_size,
    echo_enabled,
)

logger = logging.getLogger(__name__)


class PosixPtyBackend:
    """Full pseudo-terminal support via the ``os``/``termios`` primitives.

    The child runs ``setsid`` + ``TIOCSCTTY`` on the slave between fork and
    exec, see :func:`ptyscript.pty.child.exec_child`.
    """

    name = "posix"

    def ensure_available(self) -> None:
        return None

    def capture_mode(self, fd: int) -> TerminalMode | None:
        return capture_mode(fd)

    def open_pair(self) -> PtyPair:
        try:
            master_fd, slave_fd = os.openpty()
        except OSError as e:
            raise SetupError(f"Failed to open pseudoterminal: {e}") from e
        logger.debug("Opened PTY master=%d slave=%d", master_fd, slave_fd)
        return PtyPair(master_fd=master_fd, slave_fd=slave_fd)

    def copy_window_size(self, src_fd: int, pair: PtyPair) -> bool:
        return copy_window_size(src_fd, pair.master_fd)

    def apply_echo(
        self, pair: PtyPair, mode: TerminalMode | None, policy: EchoMode
    ) -> bool:
        enabled = echo_enabled(policy, input_is_terminal=mode is not None)
        apply_echo(pair.slave_fd, mode, enabled)
        return enabled

    def spawn(self, pair: PtyPair, command: str | None) -> ChildHandle:
        """Fork; the child execs ``command`` (or $SHELL) on the slave.

        The parent closes its copy of the slave before returning.
        """
        argv = resolve_command(command)
        try:
            pid = os.fork()
        except OSError as e:
            raise SetupError(f"Fork failed: {e}") from e

        if pid == 0:
            exec_child(pair.master_fd, pair.slave_fd, argv)

        pair.close_slave()
        logger.debug("Spawned child pid=%d argv=%s", pid, argv)
        return ChildHandle(pid=pid, argv=argv)
