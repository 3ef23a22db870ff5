"""Configuration — Pydantic models for ptyscript sessions and defaults."""

from __future__ import annotations

import enum
import json
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ptyscript.config.size import parse_size

DEFAULT_TRANSCRIPT = "typescript"


class EchoMode(enum.StrEnum):
    """Echo policy for the subordinate side of the PTY."""

    ALWAYS = "always"
    NEVER = "never"
    AUTO = "auto"


class LogFormat(enum.StrEnum):
    """Timing log line format."""

    CLASSIC = "classic"
    ADVANCED = "advanced"


class SessionConfig(BaseModel):
    """Everything a recording session needs, resolved up front.

    Built once by the CLI (or a test) and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    transcript: Path = Field(default=Path(DEFAULT_TRANSCRIPT))
    append: bool = False
    force: bool = Field(
        default=False,
        description="Allow the transcript to be a hard or symbolic link",
    )
    command: str | None = Field(
        default=None, description="Run this via $SHELL -c instead of a shell"
    )
    echo: EchoMode = EchoMode.AUTO
    return_exit_status: bool = False
    flush: bool = Field(default=False, description="Flush sinks after every write")
    log_io: Path | None = None
    log_in: Path | None = None
    log_out: Path | None = None
    log_timing: Path | None = None
    logging_format: LogFormat = LogFormat.CLASSIC
    output_limit: int | None = Field(default=None, ge=0)
    quiet: bool = False

    @model_validator(mode="after")
    def _check_log_exclusivity(self) -> SessionConfig:
        if self.log_io is not None:
            if self.log_out is not None:
                raise ValueError("the argument '--log-io' cannot be used with '--log-out'")
            if self.log_in is not None:
                raise ValueError("the argument '--log-io' cannot be used with '--log-in'")
        return self


class ScriptDefaults(BaseModel):
    """Operator defaults applied when an option is not given on the command line."""

    echo: EchoMode = EchoMode.AUTO
    logging_format: LogFormat = LogFormat.CLASSIC
    flush: bool = False
    quiet: bool = False
    output_limit: str | None = Field(
        default=None, description="Size string, e.g. '10M' (see parse_size)"
    )

    def output_limit_bytes(self) -> int | None:
        if self.output_limit is None:
            return None
        return parse_size(self.output_limit)

    @classmethod
    def load(cls, config_path: str | None = None) -> ScriptDefaults:
        """Load defaults from file, env vars, or built-ins.

        Priority: env vars > .env file > config file > defaults.

        Env vars:
            PTYSCRIPT_ECHO            - always / never / auto
            PTYSCRIPT_LOGGING_FORMAT  - classic / advanced
            PTYSCRIPT_FLUSH           - true / false
            PTYSCRIPT_QUIET           - true / false
            PTYSCRIPT_OUTPUT_LIMIT    - size string such as 1M

        The .env file is read without touching ``os.environ`` so its values
        never leak into the recorded shell's environment.
        """
        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        env: dict[str, str | None] = {**dotenv_values(".env"), **os.environ}
        for field_name in cls.model_fields:
            value = env.get(f"PTYSCRIPT_{field_name.upper()}")
            if value:
                config_data[field_name] = value.lower() if field_name != "output_limit" else value

        return cls.model_validate(config_data)


__all__ = [
    "DEFAULT_TRANSCRIPT",
    "EchoMode",
    "LogFormat",
    "ScriptDefaults",
    "SessionConfig",
    "parse_size",
]
