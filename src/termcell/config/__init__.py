"""Configuration — Pydantic models for termcell settings."""

from __future__ import annotations

import json
import os
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class RelayConfig(BaseModel):
    """Tuning for the byte relays between the terminal and the pty."""

    read_size: int = Field(
        default=4096, gt=0, description="Bytes requested per read in each relay"
    )
    drain_timeout: float = Field(
        default=0.05,
        ge=0.0,
        description=(
            "Seconds the output relay keeps polling the pty after the command "
            "exited before it treats the output as exhausted."
        ),
    )


class TermcellConfig(BaseModel):
    """Top-level termcell configuration."""

    relay: RelayConfig = Field(default_factory=RelayConfig)
    log_level: LogLevel = Field(default="WARNING", description="Root logging level")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def load(cls, config_path: str | None = None) -> TermcellConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            TERMCELL_READ_SIZE      - Override relay.read_size
            TERMCELL_DRAIN_TIMEOUT  - Override relay.drain_timeout
            TERMCELL_LOG_LEVEL      - Override log_level
        """
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        relay = config_data.get("relay", {})

        env_read_size = os.environ.get("TERMCELL_READ_SIZE")
        if env_read_size:
            relay["read_size"] = int(env_read_size)

        env_drain_timeout = os.environ.get("TERMCELL_DRAIN_TIMEOUT")
        if env_drain_timeout:
            relay["drain_timeout"] = float(env_drain_timeout)

        if relay:
            config_data["relay"] = relay

        env_log_level = os.environ.get("TERMCELL_LOG_LEVEL")
        if env_log_level:
            config_data["log_level"] = env_log_level

        return cls.model_validate(config_data)
