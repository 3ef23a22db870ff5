"""CLI entry point for ptyscript."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import ValidationError

from ptyscript import __version__
from ptyscript.config import (
    DEFAULT_TRANSCRIPT,
    EchoMode,
    LogFormat,
    ScriptDefaults,
    SessionConfig,
    parse_size,
)
from ptyscript.errors import ScriptError
from ptyscript.session.launcher import run_session

PROG = "ptyscript"

app = typer.Typer(
    name=PROG,
    help="Make a typescript of everything printed on your terminal.",
    add_completion=False,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(message: str) -> NoReturn:
    typer.echo(f"{PROG}: {message}", err=True)
    raise typer.Exit(1)


def _validation_message(error: ValidationError) -> str:
    """First validation problem, without pydantic's "Value error, " prefix."""
    first = error.errors()[0]
    cause = first.get("ctx", {}).get("error")
    return str(cause) if cause is not None else first["msg"]


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROG} {__version__}")
        raise typer.Exit()


@app.command()
def record(
    file: str | None = typer.Argument(
        None, help=f"File to save the output to (default: {DEFAULT_TRANSCRIPT})."
    ),
    append: bool = typer.Option(
        False, "--append", "-a", help="Append the output to file or to typescript."
    ),
    command: str | None = typer.Option(
        None, "--command", "-c", help="Run the command rather than an interactive shell."
    ),
    echo: EchoMode | None = typer.Option(
        None, "--echo", "-E", help="Set echo mode (always, never, auto).", case_sensitive=False
    ),
    return_status: bool = typer.Option(
        False, "--return", "-e", help="Return the exit status of the child process."
    ),
    flush: bool = typer.Option(False, "--flush", "-f", help="Flush output after each write."),
    force: bool = typer.Option(
        False,
        "--force",
        help="Allow the default output file typescript to be a hard or symbolic link.",
    ),
    log_io: str | None = typer.Option(
        None, "--log-io", "-B", help="Log input and output to the same file."
    ),
    log_in: str | None = typer.Option(None, "--log-in", "-I", help="Log input to the file."),
    log_out: str | None = typer.Option(None, "--log-out", "-O", help="Log output to the file."),
    log_timing: str | None = typer.Option(
        None, "--log-timing", "-T", help="Log timing information to the file."
    ),
    logging_format: LogFormat | None = typer.Option(
        None,
        "--logging-format",
        "-m",
        help="Force use of advanced or classic timing log format.",
        case_sensitive=False,
    ),
    output_limit: str | None = typer.Option(
        None,
        "--output-limit",
        "-o",
        help="Limit the size of the typescript (e.g. 10K, 1MiB, 5MB).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Be quiet (do not write start and done messages)."
    ),
    timing: str | None = typer.Option(
        None, "--timing", "-t", help="Output timing data to the file (deprecated, use -T)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", help="JSON file with default settings."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Record a terminal session through a pseudo-terminal."""
    setup_logging(verbose)

    if log_io is not None:
        if log_out is not None:
            _fail("the argument '--log-io' cannot be used with '--log-out'")
        if log_in is not None:
            _fail("the argument '--log-io' cannot be used with '--log-in'")

    try:
        defaults = ScriptDefaults.load(config_file)
    except ValidationError as e:
        _fail(f"Invalid defaults: {_validation_message(e)}")
    except (OSError, ValueError) as e:
        _fail(f"Failed to read config file: {e}")

    if timing is not None:
        typer.echo(
            f"{PROG}: warning: -t/--timing option is deprecated, use -T/--log-timing instead",
            err=True,
        )
        if log_timing is None:
            log_timing = timing

    try:
        if output_limit is not None:
            limit = parse_size(output_limit)
        else:
            limit = defaults.output_limit_bytes()
    except ValueError as e:
        _fail(str(e))

    try:
        config = SessionConfig(
            transcript=Path(file or DEFAULT_TRANSCRIPT),
            append=append,
            force=force,
            command=command,
            echo=echo or defaults.echo,
            return_exit_status=return_status,
            flush=flush or defaults.flush,
            log_io=log_io,
            log_in=log_in,
            log_out=log_out,
            log_timing=log_timing,
            logging_format=logging_format or defaults.logging_format,
            output_limit=limit,
            quiet=quiet or defaults.quiet,
        )
    except ValidationError as e:
        _fail(_validation_message(e))

    try:
        result = run_session(config, on_notice=typer.echo)
    except ScriptError as e:
        _fail(str(e))

    if result.exit_code:
        raise typer.Exit(result.exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
