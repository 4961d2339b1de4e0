"""
Configuration for the resilient fetch client.

Settings are read from the process environment and validated with pydantic;
invalid values are reported as ``ConfigurationError``.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from resilient_fetch.shared.exceptions import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class FetchSettings(BaseModel):
    """Environment-backed settings for retries, timeouts and logging."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, gt=0)
    base_backoff_ms: int = Field(default=1000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    retry_server_errors: bool = False
    timeout_seconds: float = Field(default=30.0, gt=0)
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FetchSettings":
        """
        Load settings from environment variables.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``

        Returns:
            Validated settings

        Raises:
            ConfigurationError: If any variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        raw = {
            "max_attempts": env.get("FETCH_MAX_ATTEMPTS"),
            "base_backoff_ms": env.get("FETCH_BASE_BACKOFF_MS"),
            "backoff_multiplier": env.get("FETCH_BACKOFF_MULTIPLIER"),
            "timeout_seconds": env.get("FETCH_TIMEOUT_SECONDS"),
            "connect_timeout_seconds": env.get("FETCH_CONNECT_TIMEOUT_SECONDS"),
            "log_level": env.get("LOG_LEVEL"),
        }
        values = {name: value for name, value in raw.items() if value is not None}

        for name, variable in (
            ("retry_server_errors", "FETCH_RETRY_SERVER_ERRORS"),
            ("log_json", "LOG_JSON"),
        ):
            if variable in env:
                values[name] = _parse_bool(variable, env[variable])

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid fetch configuration: {e}",
                details={"errors": e.errors(include_url=False)},
            ) from e

    def to_retry_policy(self):
        """Build the retry policy described by these settings."""
        from resilient_fetch.infrastructure.resilience.retry import RetryPolicy

        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_backoff_ms=self.base_backoff_ms,
            backoff_multiplier=self.backoff_multiplier,
            retry_server_errors=self.retry_server_errors,
        )


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got: {value}")
