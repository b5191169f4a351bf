"""
Logging configuration for notification streams

Provides a consistent logging setup for services and CLI tools that host
controller notification streams, with HTTP client noise suppression.
"""

import logging
import os
from typing import Optional

NOISY_HTTP_LOGGERS = ["httpx", "httpcore", "urllib3"]


def configure_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    suppress_http: bool = True,
    verbose: bool = False
) -> None:
    """
    Configure logging for notification stream hosts

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string, uses default if None
        suppress_http: Whether to quiet per-request HTTP client logging
        verbose: If True, include module names and line numbers
    """
    if isinstance(level, str):
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = level

    if format_string is None:
        if verbose:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        else:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=format_string,
        force=True  # Override any existing configuration
    )

    if suppress_http:
        suppress_http_logging()


def suppress_http_logging() -> None:
    """Keep HTTP client request logging out of stream diagnostics"""
    for logger_name in NOISY_HTTP_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def configure_service_logging(service_name: str = "notification-streams", verbose: bool = False) -> logging.Logger:
    """
    Configure logging for a service hosting notification streams

    Args:
        service_name: Name of the hosting service
        verbose: Whether to use verbose logging

    Returns:
        Logger instance for the service
    """
    configure_logging(
        level=os.getenv("NOTIFY_STREAM_LOG_LEVEL", "INFO"),
        verbose=verbose,
        suppress_http=True
    )
    return logging.getLogger(service_name)
