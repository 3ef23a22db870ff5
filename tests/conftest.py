"""Shared fixtures for PTY tests."""

from __future__ import annotations

import os
import select
import time
from collections.abc import Callable

import pytest


def _read_master(fd: int, timeout: float = 5.0) -> bytes:
    """Read a PTY master until the slave side is gone."""
    chunks = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        readable, _, _ = select.select([fd], [], [], 0.1)
        if not readable:
            continue
        try:
            data = os.read(fd, 1024)
        except OSError:
            # EIO: every slave descriptor is closed.
            break
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


@pytest.fixture
def read_master() -> Callable[..., bytes]:
    return _read_master
