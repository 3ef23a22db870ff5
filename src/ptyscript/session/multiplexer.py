"""I/O multiplexer — the parent-side relay loop between caller and PTY.

One ``select()`` loop watches the caller's input and the PTY master:

* input → master, mirrored to the input and combined logs;
* master → caller output, mirrored to the transcript, output and
  combined logs;
* every transfer gets a timing record when a timing log is open.

The loop wakes at least once per ``poll_interval`` to notice child exit and
pending flush requests even when nothing is flowing.
"""

from __future__ import annotations

import enum
import errno
import logging
import os
import select
import time
from dataclasses import dataclass

from ptyscript.errors import RelayError, SetupError
from ptyscript.pty.backend import ChildHandle
from ptyscript.pty.signals import FlushFlag
from ptyscript.session.limit import SizeLimit
from ptyscript.session.sinks import LogFileSet

logger = logging.getLogger(__name__)

READ_CHUNK = 1024
POLL_INTERVAL = 1.0
# How long to wait for the exit status after the child closed its output.
EXIT_GRACE = 2.0
# Upper bound on reads after exit, in case a grandchild keeps the slave busy.
DRAIN_CHUNKS = 256


class LoopState(enum.Enum):
    RUNNING = "running"
    CHILD_EXITED = "child_exited"


class ExitReason(enum.Enum):
    """Why the loop stopped."""

    CHILD_EXITED = "child_exited"
    OUTPUT_CLOSED = "output_closed"
    LIMIT_REACHED = "limit_reached"
    READ_ERROR = "read_error"


@dataclass
class RelayResult:
    exit_status: int
    reason: ExitReason
    bytes_out: int
    bytes_in: int


def write_all(fd: int, data: bytes, poll_interval: float = POLL_INTERVAL) -> None:
    """Write every byte of ``data`` to a possibly non-blocking ``fd``.

    Would-block waits for writability; interrupted writes are retried.

    Raises:
        OSError: Any other write failure, or a write that made no progress.
    """
    view = memoryview(data)
    while view:
        try:
            n = os.write(fd, view)
        except BlockingIOError:
            select.select([], [fd], [], poll_interval)
            continue
        except InterruptedError:
            continue
        if n == 0:
            raise OSError(errno.EIO, "write returned 0")
        view = view[n:]


class IOMultiplexer:
    """Relays bytes between the caller and the child until the session ends.

    The caller's descriptors default to stdin/stdout; tests pass pipes.
    """

    def __init__(
        self,
        master_fd: int,
        child: ChildHandle,
        sinks: LogFileSet,
        *,
        input_fd: int = 0,
        output_fd: int = 1,
        flush_flag: FlushFlag | None = None,
        limit: SizeLimit | None = None,
        start_time: float | None = None,
        poll_interval: float = POLL_INTERVAL,
        exit_grace: float = EXIT_GRACE,
    ) -> None:
        self._master_fd = master_fd
        self._child = child
        self._sinks = sinks
        self._input_fd = input_fd
        self._output_fd = output_fd
        self._flush_flag = flush_flag
        self._limit = limit or SizeLimit()
        self._last = time.monotonic() if start_time is None else start_time
        self._poll_interval = poll_interval
        self._exit_grace = exit_grace

        self._state = LoopState.RUNNING
        self._reason = ExitReason.CHILD_EXITED
        self._exit_status: int | None = None
        self._input_open = True
        self._bytes_in = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> RelayResult:
        """Run the loop to completion.

        Raises:
            SetupError: Non-blocking mode could not be enabled.
            RelayError: ``select()`` failed.
        """
        input_blocking = _set_nonblocking(self._input_fd, "stdin")
        try:
            _set_nonblocking(self._master_fd, "master PTY")
            while self._state is LoopState.RUNNING:
                self._step()
        finally:
            self._restore_input(input_blocking)

        if self._exit_status is None and self._reason is not ExitReason.LIMIT_REACHED:
            self._exit_status = self._child.wait(self._exit_grace)

        status = self._exit_status if self._exit_status is not None else 0
        logger.debug(
            "Relay finished: reason=%s status=%d out=%d in=%d",
            self._reason.value,
            status,
            self._limit.total,
            self._bytes_in,
        )
        return RelayResult(
            exit_status=status,
            reason=self._reason,
            bytes_out=self._limit.total,
            bytes_in=self._bytes_in,
        )

    # ------------------------------------------------------------------
    # Loop body
    # ------------------------------------------------------------------

    def _step(self) -> None:
        watched = [self._master_fd]
        if self._input_open:
            watched.append(self._input_fd)

        # EINTR is retried inside select() once the signal handler has run.
        try:
            readable, _, _ = select.select(watched, [], [], self._poll_interval)
        except OSError as e:
            raise RelayError(f"select() failed: {e}") from e

        if self._exit_status is None:
            self._exit_status = self._child.poll()

        if self._flush_flag is not None and self._flush_flag.consume():
            logger.debug("Flush requested")
            self._sinks.flush_all()

        if self._input_fd in readable and self._input_open:
            self._relay_input()

        if self._master_fd in readable:
            self._relay_output()

        if self._exit_status is not None and self._state is LoopState.RUNNING:
            self._finish(ExitReason.CHILD_EXITED)
            self._drain_output()

    def _tick(self) -> float:
        now = time.monotonic()
        elapsed, self._last = now - self._last, now
        return elapsed

    def _finish(self, reason: ExitReason) -> None:
        if self._state is LoopState.RUNNING:
            self._state = LoopState.CHILD_EXITED
            self._reason = reason

    def _relay_input(self) -> None:
        try:
            data = os.read(self._input_fd, READ_CHUNK)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            logger.error("Failed to read from stdin: %s", e)
            self._input_open = False
            return

        if not data:
            # The child may still be producing output.
            logger.debug("End of input")
            self._input_open = False
            return

        elapsed = self._tick()
        self._bytes_in += len(data)
        try:
            write_all(self._master_fd, data, self._poll_interval)
        except OSError as e:
            logger.error("Failed to write to master PTY: %s", e)
        self._sinks.record_input(data, elapsed)

    def _relay_output(self) -> bool:
        """Move one chunk from the master to the caller. True if bytes moved."""
        try:
            data = os.read(self._master_fd, self._limit.budget(READ_CHUNK))
        except (BlockingIOError, InterruptedError):
            return False
        except OSError as e:
            # Linux reports EIO once every slave descriptor is closed.
            if e.errno == errno.EIO:
                self._finish(ExitReason.OUTPUT_CLOSED)
            else:
                logger.error("Failed to read from master PTY: %s", e)
                self._finish(ExitReason.READ_ERROR)
            return False

        if not data:
            self._finish(ExitReason.OUTPUT_CLOSED)
            return False

        elapsed = self._tick()
        try:
            write_all(self._output_fd, data, self._poll_interval)
        except OSError as e:
            logger.error("Failed to write to stdout: %s", e)
        self._sinks.record_output(data, elapsed)

        if self._limit.add(len(data)):
            self._child.terminate()
            logger.warning(
                "Output limit reached (%d bytes), terminating.", self._limit.limit
            )
            # Overrides CHILD_EXITED when the limit trips while draining.
            self._state = LoopState.CHILD_EXITED
            self._reason = ExitReason.LIMIT_REACHED
        return True

    def _drain_output(self) -> None:
        """Read whatever the exited child left in the PTY buffer."""
        for _ in range(DRAIN_CHUNKS):
            if self._limit.exceeded or not self._relay_output():
                break

    def _restore_input(self, blocking: bool) -> None:
        try:
            os.set_blocking(self._input_fd, blocking)
        except OSError as e:
            logger.warning("Failed to restore stdin flags: %s", e)


def _set_nonblocking(fd: int, name: str) -> bool:
    """Put ``fd`` in non-blocking mode; return whether it was blocking before."""
    try:
        was_blocking = os.get_blocking(fd)
        os.set_blocking(fd, False)
    except OSError as e:
        raise SetupError(f"Failed to set {name} flags: {e}") from e
    return was_blocking


__all__ = [
    "ExitReason",
    "IOMultiplexer",
    "LoopState",
    "RelayResult",
    "write_all",
]
