"""Flush-on-signal bridge between a signal handler and the I/O loop."""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

FLUSH_SIGNAL: int = getattr(signal, "SIGUSR1", 0)


class FlushFlag:
    """Process-wide "flush now" request.

    The handler only bumps ``_raised``; the loop only writes ``_seen``.
    With one writer per attribute, a signal that lands while ``consume()``
    runs is picked up on the next call rather than lost.
    """

    def __init__(self) -> None:
        self._raised = 0
        self._seen = 0
        self._signum: int | None = None
        self._previous: Any = None

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        self._raised += 1

    def set(self) -> None:
        """Request a flush without going through a signal."""
        self._raised += 1

    @property
    def pending(self) -> bool:
        return self._raised != self._seen

    def consume(self) -> bool:
        """Test-and-clear. True if a flush was requested since the last call."""
        raised = self._raised
        if raised == self._seen:
            return False
        self._seen = raised
        return True

    def install(self, signum: int = FLUSH_SIGNAL) -> None:
        """Route ``signum`` to this flag. Must run on the main thread."""
        if not signum:
            logger.debug("No flush signal on this platform")
            return
        self._previous = signal.signal(signum, self._handle)
        self._signum = signum
        logger.debug("Flush handler installed for signal %d", signum)

    def uninstall(self) -> None:
        """Put back whatever handler was active before ``install()``."""
        if self._signum is None:
            return
        previous = self._previous if self._previous is not None else signal.SIG_DFL
        signal.signal(self._signum, previous)
        self._signum = None
        self._previous = None

    @contextmanager
    def installed(self, signum: int = FLUSH_SIGNAL) -> Iterator[FlushFlag]:
        self.install(signum)
        try:
            yield self
        finally:
            self.uninstall()


# The one process-wide instance used by sessions.
flush_flag = FlushFlag()
