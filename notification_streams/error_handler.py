"""
Error taxonomy and handling for notification streams

Centralizes the distinction between fatal and transient transport errors and
the logging of failures that are deliberately not propagated to callers.
"""

import logging
from typing import Optional, Union

import httpx

from .models import ReadyState, SessionError, StreamKey


class NotificationStreamError(Exception):
    """Base class for notification stream errors."""


class StreamConnectionError(NotificationStreamError):
    """Transport-level problem on a stream connection."""

    fatal = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FatalStreamError(StreamConnectionError):
    """The connection is unusable and will not be resumed in place."""

    fatal = True


class TransientStreamError(StreamConnectionError):
    """The connection dropped but may be resumed in place."""


def is_fatal_error(error: Union[SessionError, ReadyState, int]) -> bool:
    """
    Check whether an error signal means the connection is gone for good

    Args:
        error: A session error event or the transport's ready state

    Returns:
        True if the transport reports its connection as closed
    """
    if isinstance(error, SessionError):
        return error.is_fatal
    return ReadyState(error) == ReadyState.CLOSED


def is_transient_exception(exc: BaseException) -> bool:
    """Network-level failures that an event stream transport resumes from."""
    if isinstance(exc, StreamConnectionError):
        return not exc.fatal
    return isinstance(exc, (httpx.TransportError, httpx.StreamError))


def classify_transport_exception(exc: BaseException, resume_allowed: bool = True) -> SessionError:
    """
    Turn a transport exception into a session error event

    Args:
        exc: Exception raised while reading the stream
        resume_allowed: False once in-place resume attempts are exhausted

    Returns:
        SessionError whose ready state tells fatal and transient apart
    """
    if resume_allowed and is_transient_exception(exc):
        return SessionError(cause=exc, ready_state=ReadyState.CONNECTING)
    return SessionError(cause=exc, ready_state=ReadyState.CLOSED)


def describe_error(exc: BaseException) -> str:
    """Short human readable description of a transport failure."""
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        return f"{type(exc).__name__} (HTTP {status_code}): {exc}"
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def log_close_failure(logger: logging.Logger, key: Union[StreamKey, str], exc: BaseException) -> None:
    """
    Report a swallowed close failure

    Removal from the registry still succeeds; this keeps the failure visible
    to operators.
    """
    logger.error(
        "EventSource for %s could not be closed: %s", key, describe_error(exc),
        extra={"stream_key": str(key), "close_error": type(exc).__name__},
    )
