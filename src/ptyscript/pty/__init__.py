"""PTY primitives — backend selection, child launch and the flush signal.

Platform-specific modules (``posix``, ``terminal``, ``child``) import
``termios``/``fcntl`` and are loaded only through ``get_backend()``.
"""

from ptyscript.pty.backend import (
    ChildHandle,
    PtyBackend,
    PtyPair,
    TerminalMode,
    UnsupportedBackend,
    get_backend,
)
from ptyscript.pty.signals import FlushFlag, flush_flag

__all__ = [
    "ChildHandle",
    "FlushFlag",
    "PtyBackend",
    "PtyPair",
    "TerminalMode",
    "UnsupportedBackend",
    "flush_flag",
    "get_backend",
]
