"""Tests for ptyscript.cli (option mapping and error reporting)."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

import ptyscript.cli as cli
from ptyscript import __version__
from ptyscript.config import EchoMode, LogFormat, SessionConfig
from ptyscript.errors import SinkOpenError
from ptyscript.session import ExitReason, SessionResult

runner = CliRunner()


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> list[SessionConfig]:
    """Replace run_session with a stub that records the config it gets."""
    for name in (
        "PTYSCRIPT_ECHO",
        "PTYSCRIPT_LOGGING_FORMAT",
        "PTYSCRIPT_FLUSH",
        "PTYSCRIPT_QUIET",
        "PTYSCRIPT_OUTPUT_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    configs: list[SessionConfig] = []

    def fake_run_session(config: SessionConfig, **kwargs: object) -> SessionResult:
        configs.append(config)
        code = 3 if config.return_exit_status else 0
        return SessionResult(
            child_status=3,
            exit_code=code,
            reason=ExitReason.CHILD_EXITED,
            bytes_out=0,
            bytes_in=0,
        )

    monkeypatch.setattr(cli, "run_session", fake_run_session)
    return configs


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_log_io_with_log_out(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-B", "io.log", "-O", "out.log"])
        assert result.exit_code == 1
        assert "the argument '--log-io' cannot be used with '--log-out'" in result.output
        assert captured == []

    def test_log_io_with_log_in(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["--log-io", "io.log", "--log-in", "in.log"])
        assert result.exit_code == 1
        assert "the argument '--log-io' cannot be used with '--log-in'" in result.output

    def test_invalid_output_limit(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-o", "12X"])
        assert result.exit_code == 1
        assert "Invalid number: 12X" in result.output
        assert captured == []

    def test_empty_output_limit(
        self, captured: list[SessionConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PTYSCRIPT_OUTPUT_LIMIT", "2KB")
        result = runner.invoke(cli.app, ["-o", ""])
        assert result.exit_code == 1
        assert "Invalid number" in result.output
        assert captured == []

    def test_invalid_echo_mode(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-E", "sometimes"])
        assert result.exit_code != 0
        assert captured == []

    def test_bad_config_file(self, captured: list[SessionConfig], tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        result = runner.invoke(cli.app, ["--config", str(path)])
        assert result.exit_code == 1
        assert "Failed to read config file" in result.output

    def test_invalid_defaults(
        self, captured: list[SessionConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PTYSCRIPT_LOGGING_FORMAT", "fancy")
        result = runner.invoke(cli.app, [])
        assert result.exit_code == 1
        assert "Invalid defaults" in result.output


# ---------------------------------------------------------------------------
# Option mapping
# ---------------------------------------------------------------------------


class TestOptionMapping:
    def test_defaults(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, [])
        assert result.exit_code == 0
        (config,) = captured
        assert config.transcript == Path("typescript")
        assert config.echo is EchoMode.AUTO
        assert config.logging_format is LogFormat.CLASSIC
        assert config.output_limit is None
        assert config.command is None

    def test_all_options(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(
            cli.app,
            [
                "-a",
                "-c", "ls -l",
                "-E", "never",
                "-f",
                "--force",
                "-I", "in.log",
                "-O", "out.log",
                "-T", "timing.log",
                "-m", "advanced",
                "-o", "1K",
                "-q",
                "session.log",
            ],
        )
        assert result.exit_code == 0, result.output
        (config,) = captured
        assert config.transcript == Path("session.log")
        assert config.append is True
        assert config.command == "ls -l"
        assert config.echo is EchoMode.NEVER
        assert config.flush is True
        assert config.force is True
        assert config.log_in == Path("in.log")
        assert config.log_out == Path("out.log")
        assert config.log_timing == Path("timing.log")
        assert config.logging_format is LogFormat.ADVANCED
        assert config.output_limit == 1024
        assert config.quiet is True

    def test_deprecated_timing_option(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-t", "old-timing.log"])
        assert result.exit_code == 0
        assert "deprecated" in result.output
        assert captured[0].log_timing == Path("old-timing.log")

    def test_log_timing_wins_over_deprecated(self, captured: list[SessionConfig]) -> None:
        runner.invoke(cli.app, ["-t", "old.log", "-T", "new.log"])
        assert captured[0].log_timing == Path("new.log")

    def test_env_defaults(
        self, captured: list[SessionConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PTYSCRIPT_ECHO", "always")
        monkeypatch.setenv("PTYSCRIPT_OUTPUT_LIMIT", "2KB")
        monkeypatch.setenv("PTYSCRIPT_QUIET", "true")
        runner.invoke(cli.app, [])
        (config,) = captured
        assert config.echo is EchoMode.ALWAYS
        assert config.output_limit == 2000
        assert config.quiet is True

    def test_command_line_beats_env(
        self, captured: list[SessionConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PTYSCRIPT_ECHO", "always")
        monkeypatch.setenv("PTYSCRIPT_OUTPUT_LIMIT", "2KB")
        runner.invoke(cli.app, ["-E", "never", "-o", "10"])
        (config,) = captured
        assert config.echo is EchoMode.NEVER
        assert config.output_limit == 10


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class TestExitCodes:
    def test_child_status_hidden(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-c", "exit 3"])
        assert result.exit_code == 0

    def test_child_status_returned(self, captured: list[SessionConfig]) -> None:
        result = runner.invoke(cli.app, ["-e", "-c", "exit 3"])
        assert result.exit_code == 3

    def test_setup_error(
        self, captured: list[SessionConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_run_session(config: SessionConfig, **kwargs: object) -> SessionResult:
            raise SinkOpenError("output file", config.transcript, "Permission denied")

        monkeypatch.setattr(cli, "run_session", failing_run_session)
        result = runner.invoke(cli.app, [])
        assert result.exit_code == 1
        assert "ptyscript: Failed to open output file: Permission denied" in result.output

    def test_version(self) -> None:
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert result.output.strip() == f"ptyscript {__version__}"

    def test_help(self) -> None:
        result = runner.invoke(cli.app, ["--help"])
        assert result.exit_code == 0
        assert "--log-timing" in result.output
