"""Tests for error classification and reporting."""

import asyncio
import logging

import httpx

from notification_streams.error_handler import (
    FatalStreamError, TransientStreamError, classify_transport_exception, describe_error,
    is_fatal_error, log_close_failure
)
from notification_streams.models import ReadyState, SessionError, StreamCategory, StreamKey


def test_is_fatal_error_from_ready_state():
    assert is_fatal_error(ReadyState.CLOSED) is True
    assert is_fatal_error(2) is True
    assert is_fatal_error(ReadyState.CONNECTING) is False
    assert is_fatal_error(ReadyState.OPEN) is False


def test_is_fatal_error_from_event():
    cause = ConnectionError("gone")
    assert is_fatal_error(SessionError(cause=cause, ready_state=ReadyState.CLOSED)) is True
    assert is_fatal_error(SessionError(cause=cause, ready_state=ReadyState.CONNECTING)) is False


def test_network_errors_are_transient():
    error = classify_transport_exception(httpx.ConnectError("refused"))
    assert error.ready_state == ReadyState.CONNECTING
    assert not error.is_fatal

    error = classify_transport_exception(TransientStreamError("ended"))
    assert not error.is_fatal


def test_exhausted_resume_is_fatal():
    error = classify_transport_exception(httpx.ReadError("reset"), resume_allowed=False)
    assert error.is_fatal


def test_fatal_and_unexpected_errors_are_fatal():
    assert classify_transport_exception(FatalStreamError("Non-200 status code (401)", status_code=401)).is_fatal
    assert classify_transport_exception(ValueError("bug")).is_fatal


def test_describe_error():
    assert describe_error(FatalStreamError("forbidden", status_code=403)) == "FatalStreamError (HTTP 403): forbidden"
    assert describe_error(asyncio.TimeoutError()) == "TimeoutError"


def test_log_close_failure(caplog):
    key = StreamKey("ctrl1", "v1", StreamCategory.OPERATIONAL)

    with caplog.at_level(logging.ERROR):
        log_close_failure(logging.getLogger("test"), key, RuntimeError("broken pipe"))

    record = caplog.records[0]
    assert "EventSource for ctrl1-v1-OPERATIONAL could not be closed" in record.getMessage()
    assert record.stream_key == "ctrl1-v1-OPERATIONAL"
    assert record.close_error == "RuntimeError"
