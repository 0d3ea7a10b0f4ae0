"""Central configuration: environment / .env, optional YAML file, CLI overrides.

Precedence: CLI overrides > YAML file > environment / .env > defaults.
Invalid values are fatal at startup: ``load_settings`` raises ``ConfigError``
before any polling loop exists.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from sre_checker.health.tracker import Thresholds

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / "sre-checker.yaml"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Startup configuration is missing or invalid."""


class Settings(BaseSettings):
    """Settings consumed by the monitor, notifiers and feed server."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Polling
    check_interval: float = Field(5.0, gt=0)  # seconds between probes
    timeout: float = Field(3.0, gt=0)  # per-probe limit, seconds
    health_threshold: int = Field(5, ge=1)  # consecutive successes → UP
    unhealth_threshold: int = Field(5, ge=1)  # consecutive failures → DOWN

    # Targets
    tcp_host: str = ""
    tcp_port: int = Field(80, ge=1, le=65535)
    http_host: str = ""
    http_port: int = Field(80, ge=1, le=65535)
    auth_token: str = Field("", validation_alias=AliasChoices("auth_token", "tonto_auth"))
    expected_marker: str = "CLOUDWALK"

    # Presentation
    service_name: str = "Tonto"
    tcp_link: str = ""
    http_link: str = ""

    # Notifications (one sink: e-mail wins over webhook)
    notify_email: str = ""
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "sre-checker@localhost"
    webhook_url: str = ""

    # RSS feed server
    rss_feed: bool = False
    feed_host: str = "0.0.0.0"
    feed_port: int = 8080

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _check_targets(self) -> Settings:
        missing = [name for name in ("tcp_host", "http_host") if not getattr(self, name).strip()]
        if missing:
            raise ValueError(f"missing target host: {', '.join(missing)}")
        if self.timeout >= self.check_interval:
            logger.warning(
                "timeout (%ss) >= check_interval (%ss): a slow probe delays the next one",
                self.timeout, self.check_interval,
            )
        return self

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(health=self.health_threshold, unhealth=self.unhealth_threshold)

    @property
    def links(self) -> dict[str, str]:
        return {
            "tcp": self.tcp_link or f"{self.tcp_host}:{self.tcp_port}",
            "http": self.http_link or f"https://{self.http_host}:{self.http_port}",
        }


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a flat dict of settings."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    # Accept dashed keys as written on the command line (check-interval).
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def load_settings(
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Build validated settings or raise ``ConfigError`` with a readable message."""
    values: dict[str, Any] = {}
    if config_file is not None:
        values.update(read_config_file(config_file))
        logger.info("Using config file: %s", config_file)
    elif DEFAULT_CONFIG_PATH.exists():
        values.update(read_config_file(DEFAULT_CONFIG_PATH))
        logger.info("Using config file: %s", DEFAULT_CONFIG_PATH)

    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
