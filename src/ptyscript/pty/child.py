"""Child side of the fork: attach to the PTY slave and exec the shell.

Everything here runs in the forked child. Failures are reported on the
child's current stderr and end the child with status 1; the parent only
sees the exit status.
"""

from __future__ import annotations

import fcntl
import os
import termios
from collections.abc import Mapping
from typing import NoReturn

DEFAULT_SHELL = "/bin/sh"


def resolve_shell(environ: Mapping[str, str] | None = None) -> str:
    """$SHELL, or /bin/sh when it is unset or empty."""
    env = os.environ if environ is None else environ
    return env.get("SHELL") or DEFAULT_SHELL


def resolve_command(
    command: str | None, environ: Mapping[str, str] | None = None
) -> list[str]:
    """argv for the child: ``$SHELL -c command`` or an interactive ``$SHELL``."""
    shell = resolve_shell(environ)
    if command is not None:
        return [shell, "-c", command]
    return [shell]


def _report(message: str) -> None:
    try:
        os.write(2, f"ptyscript: {message}\n".encode(errors="replace"))
    except OSError:
        pass


def exec_child(master_fd: int, slave_fd: int, argv: list[str]) -> NoReturn:
    """Become the session leader on ``slave_fd`` and exec ``argv``.

    Never returns: either the process image is replaced or the child exits 1.
    """
    step = "close master PTY"
    try:
        os.close(master_fd)

        step = "start a new session"
        os.setsid()

        step = "set controlling terminal"
        fcntl.ioctl(slave_fd, termios.TIOCSCTTY, 0)

        for target, name in ((0, "stdin"), (1, "stdout"), (2, "stderr")):
            step = f"redirect {name}"
            os.dup2(slave_fd, target)

        if slave_fd > 2:
            step = "close slave PTY"
            os.close(slave_fd)

        step = "execute command" if len(argv) > 1 else "execute shell"
        os.execvp(argv[0], argv)
    except Exception as e:
        _report(f"Failed to {step}: {e}")
    finally:
        # Never fall back into the parent's code path.
        os._exit(1)
