"""Session launcher — wire sinks, PTY, child and relay loop together."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ptyscript.config import SessionConfig
from ptyscript.pty.backend import ChildHandle, PtyBackend, get_backend
from ptyscript.pty.signals import FlushFlag, flush_flag
from ptyscript.session.limit import SizeLimit
from ptyscript.session.multiplexer import (
    POLL_INTERVAL,
    ExitReason,
    IOMultiplexer,
    RelayResult,
)
from ptyscript.session.sinks import LogFileSet

logger = logging.getLogger(__name__)

STDIN_FILENO = 0
STDOUT_FILENO = 1


@dataclass
class SessionResult:
    """Outcome of one recording session."""

    child_status: int
    exit_code: int
    reason: ExitReason
    bytes_out: int
    bytes_in: int

    @property
    def limit_reached(self) -> bool:
        return self.reason is ExitReason.LIMIT_REACHED


def run_session(
    config: SessionConfig,
    *,
    backend: PtyBackend | None = None,
    stdin_fd: int = STDIN_FILENO,
    stdout_fd: int = STDOUT_FILENO,
    on_notice: Callable[[str], None] | None = None,
    flag: FlushFlag | None = None,
    poll_interval: float = POLL_INTERVAL,
) -> SessionResult:
    """Record one session described by ``config``.

    Opens every sink, prepares the PTY, forks the child and relays until
    the child is done. Nothing is spawned if any setup step fails, and
    every sink and descriptor opened so far is released.

    Args:
        config: Validated session settings.
        backend: PTY implementation; defaults to the platform's.
        stdin_fd: Descriptor the operator types into.
        stdout_fd: Descriptor the child's output is echoed to.
        on_notice: Receives the start/done notices (skipped when quiet).
        flag: Flush flag to install for SIGUSR1; defaults to the
            process-wide one.
        poll_interval: Override for the loop's select() timeout.

    Returns:
        The child status and the exit code the process should use.

    Raises:
        ScriptError: Any setup failure, or a fatal relay failure.
    """
    backend = backend or get_backend()
    backend.ensure_available()
    flag = flag or flush_flag

    def notice(message: str) -> None:
        if config.quiet:
            return
        if on_notice is not None:
            on_notice(message)
        else:
            logger.info(message)

    with LogFileSet.open(config) as sinks:
        mode = backend.capture_mode(stdin_fd)
        pair = backend.open_pair()
        try:
            if mode is not None:
                backend.copy_window_size(stdin_fd, pair)
            backend.apply_echo(pair, mode, config.echo)

            notice(f"Script started, file is {config.transcript}")

            # Before the fork: the child may signal as soon as it runs.
            with flag.installed():
                start_time = time.monotonic()
                child = backend.spawn(pair, config.command)
                logger.debug(
                    "Session started: pid=%d cmd=%s", child.pid, " ".join(child.argv)
                )

                relay = IOMultiplexer(
                    pair.master_fd,
                    child,
                    sinks,
                    input_fd=stdin_fd,
                    output_fd=stdout_fd,
                    flush_flag=flag,
                    limit=SizeLimit(config.output_limit),
                    start_time=start_time,
                    poll_interval=poll_interval,
                )
                result = _run_relay(relay, child)
        finally:
            pair.close()

    notice(f"Script done, file is {config.transcript}")

    exit_code = result.exit_status if config.return_exit_status else 0
    return SessionResult(
        child_status=result.exit_status,
        exit_code=exit_code,
        reason=result.reason,
        bytes_out=result.bytes_out,
        bytes_in=result.bytes_in,
    )


def _run_relay(relay: IOMultiplexer, child: ChildHandle) -> RelayResult:
    """Run the loop; if it dies early, don't leave the child behind."""
    try:
        result = relay.run()
    except BaseException:
        child.terminate()
        child.wait(timeout=1.0)
        raise
    if result.reason is ExitReason.LIMIT_REACHED:
        # Reap the terminated child; its status is not reported.
        child.wait(timeout=1.0)
    return result
