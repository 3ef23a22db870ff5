"""Terminal attributes — echo policy and window size for the PTY slave."""

from __future__ import annotations

import fcntl
import logging
import os
import struct
import termios

from ptyscript.config import EchoMode
from ptyscript.errors import SetupError
from ptyscript.pty.backend import TerminalMode

logger = logging.getLogger(__name__)

# Index of c_lflag in the list returned by tcgetattr().
_LFLAG = 3
_WINSIZE = struct.Struct("HHHH")


def capture_mode(fd: int) -> TerminalMode | None:
    """Snapshot the attributes of ``fd``, or None when it is not a terminal."""
    if not os.isatty(fd):
        return None
    try:
        attrs = termios.tcgetattr(fd)
    except termios.error as e:
        raise SetupError(f"Failed to get terminal attributes: {e}") from e
    return TerminalMode(attrs=tuple(attrs))


def echo_enabled(policy: EchoMode, input_is_terminal: bool) -> bool:
    """Whether the slave side should echo input back.

    In ``auto`` mode a real terminal on the caller's side already echoes,
    so the slave stays quiet; piped input has no echo unless the PTY adds it.
    """
    if policy is EchoMode.ALWAYS:
        return True
    if policy is EchoMode.NEVER:
        return False
    return not input_is_terminal


def apply_echo(slave_fd: int, mode: TerminalMode | None, enabled: bool) -> None:
    """Set ECHO on the slave, starting from ``mode`` or the slave's own attrs."""
    try:
        attrs = list(mode.attrs) if mode is not None else termios.tcgetattr(slave_fd)
        # tcgetattr returns cc as a nested list; copy it so the snapshot stays intact.
        attrs[6] = list(attrs[6])
        if enabled:
            attrs[_LFLAG] |= termios.ECHO
        else:
            attrs[_LFLAG] &= ~termios.ECHO
        termios.tcsetattr(slave_fd, termios.TCSANOW, attrs)
    except termios.error as e:
        raise SetupError(f"Failed to set terminal attributes: {e}") from e
    logger.debug("Slave echo %s", "on" if enabled else "off")


def read_window_size(fd: int) -> tuple[int, int, int, int] | None:
    """(rows, cols, xpixel, ypixel) of ``fd``, or None if it has none."""
    try:
        packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, b"\x00" * _WINSIZE.size)
    except OSError:
        return None
    return _WINSIZE.unpack(packed)


def copy_window_size(src_fd: int, dst_fd: int) -> bool:
    """Copy the window size of ``src_fd`` onto ``dst_fd``.

    Returns False (without raising) when either side refuses.
    """
    size = read_window_size(src_fd)
    if size is None:
        return False
    try:
        fcntl.ioctl(dst_fd, termios.TIOCSWINSZ, _WINSIZE.pack(*size))
    except OSError as e:
        logger.debug("TIOCSWINSZ failed: %s", e)
        return False
    logger.debug("Window size %dx%d", size[1], size[0])
    return True
