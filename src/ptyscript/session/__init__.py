"""Recording sessions — sinks, size limit, relay loop and launcher."""

from ptyscript.session.launcher import SessionResult, run_session
from ptyscript.session.limit import SizeLimit
from ptyscript.session.multiplexer import ExitReason, IOMultiplexer, RelayResult
from ptyscript.session.sinks import LogFileSet, SinkRole, TimingRecord

__all__ = [
    "ExitReason",
    "IOMultiplexer",
    "LogFileSet",
    "RelayResult",
    "SessionResult",
    "SinkRole",
    "SizeLimit",
    "TimingRecord",
    "run_session",
]
