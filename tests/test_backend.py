"""Tests for ptyscript.pty.backend and the POSIX backend."""

from __future__ import annotations

import os
import signal

import pytest

from ptyscript.config import EchoMode
from ptyscript.errors import UnsupportedPlatformError
from ptyscript.pty import ChildHandle, PtyBackend, PtyPair, UnsupportedBackend, get_backend
from ptyscript.pty.backend import UNSUPPORTED_MESSAGE, decode_wait_status

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs fork and PTYs")

LAUNCHER_CALLS = {
    "name",
    "ensure_available",
    "capture_mode",
    "open_pair",
    "copy_window_size",
    "apply_echo",
    "spawn",
}


def _fork_exit(code: int) -> int:
    pid = os.fork()
    if pid == 0:
        os._exit(code)
    return pid


def _fork_sleep() -> int:
    pid = os.fork()
    if pid == 0:
        try:
            os.execvp("sleep", ["sleep", "30"])
        finally:
            os._exit(127)
    return pid


# ---------------------------------------------------------------------------
# PtyPair
# ---------------------------------------------------------------------------


@posix_only
class TestPtyPair:
    def test_close_is_idempotent(self) -> None:
        master, slave = os.openpty()
        pair = PtyPair(master_fd=master, slave_fd=slave)
        pair.close()
        assert pair.master_fd == -1
        assert pair.slave_fd == -1
        pair.close()

    def test_close_slave_only(self) -> None:
        master, slave = os.openpty()
        pair = PtyPair(master_fd=master, slave_fd=slave)
        pair.close_slave()
        assert pair.slave_fd == -1
        assert pair.master_fd == master
        pair.close()


# ---------------------------------------------------------------------------
# Exit status
# ---------------------------------------------------------------------------


@posix_only
class TestDecodeWaitStatus:
    def test_normal_exit(self) -> None:
        _, status = os.waitpid(_fork_exit(5), 0)
        assert decode_wait_status(status) == 5

    def test_killed_by_signal(self) -> None:
        pid = _fork_sleep()
        os.kill(pid, signal.SIGKILL)
        _, status = os.waitpid(pid, 0)
        assert decode_wait_status(status) == 128 + signal.SIGKILL


@posix_only
class TestChildHandle:
    def test_wait_for_exit(self) -> None:
        child = ChildHandle(pid=_fork_exit(3))
        assert child.wait(timeout=5.0) == 3
        assert child.returncode == 3
        assert child.poll() == 3

    def test_poll_while_running(self) -> None:
        child = ChildHandle(pid=_fork_sleep())
        try:
            assert child.poll() is None
            assert child.returncode is None
        finally:
            child.terminate()
            child.wait(timeout=5.0)

    def test_terminate(self) -> None:
        child = ChildHandle(pid=_fork_sleep())
        child.terminate()
        assert child.wait(timeout=5.0) == 128 + signal.SIGTERM

    def test_terminate_after_exit_is_noop(self) -> None:
        child = ChildHandle(pid=_fork_exit(0))
        assert child.wait(timeout=5.0) == 0
        child.terminate()
        assert child.returncode == 0

    def test_wait_times_out(self) -> None:
        child = ChildHandle(pid=_fork_sleep())
        try:
            assert child.wait(timeout=0.1) is None
        finally:
            child.terminate()
            child.wait(timeout=5.0)

    def test_reaped_elsewhere(self) -> None:
        pid = _fork_exit(0)
        os.waitpid(pid, 0)
        assert ChildHandle(pid=pid).poll() is None


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


class TestUnsupportedBackend:
    def test_every_call_fails(self) -> None:
        backend = UnsupportedBackend()
        pair = PtyPair(master_fd=-1, slave_fd=-1)
        calls = [
            backend.ensure_available,
            lambda: backend.capture_mode(0),
            backend.open_pair,
            lambda: backend.copy_window_size(0, pair),
            lambda: backend.apply_echo(pair, None, EchoMode.AUTO),
            lambda: backend.spawn(pair, None),
        ]
        for call in calls:
            with pytest.raises(UnsupportedPlatformError, match="non-UNIX-like"):
                call()

    def test_message(self) -> None:
        assert UNSUPPORTED_MESSAGE == "`ptyscript` is unavailable on non-UNIX-like platforms."

    def test_satisfies_protocol(self) -> None:
        assert isinstance(UnsupportedBackend(), PtyBackend)

    def test_surface_is_what_the_launcher_calls(self) -> None:
        public = {name for name in vars(UnsupportedBackend) if not name.startswith("_")}
        assert public == LAUNCHER_CALLS


@posix_only
class TestPosixBackend:
    def test_selected_on_posix(self) -> None:
        backend = get_backend()
        assert backend.name == "posix"
        assert isinstance(backend, PtyBackend)
        backend.ensure_available()

    def test_open_pair(self) -> None:
        pair = get_backend().open_pair()
        try:
            assert os.isatty(pair.slave_fd)
        finally:
            pair.close()

    def test_surface_is_what_the_launcher_calls(self) -> None:
        backend_cls = type(get_backend())
        public = {name for name in vars(backend_cls) if not name.startswith("_")}
        assert public == LAUNCHER_CALLS

    def test_apply_echo_reports_decision(self) -> None:
        backend = get_backend()
        pair = backend.open_pair()
        try:
            assert backend.apply_echo(pair, None, EchoMode.AUTO) is True
            mode = backend.capture_mode(pair.slave_fd)
            assert backend.apply_echo(pair, mode, EchoMode.AUTO) is False
            assert backend.apply_echo(pair, mode, EchoMode.ALWAYS) is True
        finally:
            pair.close()

    def test_spawn_runs_command_on_slave(
        self, monkeypatch: pytest.MonkeyPatch, read_master
    ) -> None:
        monkeypatch.setenv("SHELL", "/bin/sh")
        backend = get_backend()
        pair = backend.open_pair()
        try:
            child = backend.spawn(pair, "echo spawned; exit 4")
            assert pair.slave_fd == -1
            assert child.argv == ["/bin/sh", "-c", "echo spawned; exit 4"]
            output = read_master(pair.master_fd)
            assert child.wait(timeout=5.0) == 4
        finally:
            pair.close()
        assert b"spawned" in output

    def test_child_has_controlling_terminal(
        self, monkeypatch: pytest.MonkeyPatch, read_master
    ) -> None:
        monkeypatch.setenv("SHELL", "/bin/sh")
        backend = get_backend()
        pair = backend.open_pair()
        try:
            child = backend.spawn(pair, "test -t 0 && test -t 1 && tty")
            output = read_master(pair.master_fd)
            assert child.wait(timeout=5.0) == 0
        finally:
            pair.close()
        assert b"/dev/" in output
