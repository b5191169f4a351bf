"""
Configuration for notification streams.

Settings are read from ``NOTIFY_STREAM_*`` environment variables, optionally
seeded from a dotenv file.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class NotificationStreamConfig(BaseSettings):
    """Stream lifecycle and transport settings."""

    reconnect_delay: float = Field(default=60.0, description="Seconds to wait before re-opening a failed stream")
    close_timeout: float = Field(default=10.0, description="Upper bound in seconds for closing a session")
    connect_timeout: float = Field(default=10.0, description="HTTP connect timeout in seconds")
    read_timeout: Optional[float] = Field(default=None, description="HTTP read timeout, None for long-lived streams")
    default_retry_interval: float = Field(default=1.0, description="Seconds between in-place resume attempts")
    max_resume_attempts: int = Field(default=3, description="Resume attempts before a dropped stream counts as closed")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates of controllers")
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(env_prefix="NOTIFY_STREAM_")

    @field_validator('reconnect_delay', 'close_timeout', 'connect_timeout', 'default_retry_interval')
    @classmethod
    def validate_positive(cls, v, info):
        """Delays and timeouts must be positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got: {v}")
        return v

    @field_validator('read_timeout')
    @classmethod
    def validate_read_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError(f"read_timeout must be positive or unset, got: {v}")
        return v

    @field_validator('max_resume_attempts')
    @classmethod
    def validate_resume_attempts(cls, v):
        if v < 0:
            raise ValueError(f"max_resume_attempts must not be negative, got: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v.upper()


def load_config(env_file: Optional[str] = None, **overrides) -> NotificationStreamConfig:
    """
    Build the configuration, loading a dotenv file first when given.

    Variables already present in the environment win over the file.

    Args:
        env_file: Optional path to a dotenv file
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Validated configuration
    """
    if env_file:
        env_path = Path(env_file)
        if env_path.exists():
            logger.debug("Loading environment file: %s", env_path)
            load_dotenv(dotenv_path=env_path, override=False)
        else:
            logger.warning("Environment file not found: %s", env_path)

    return NotificationStreamConfig(**overrides)
