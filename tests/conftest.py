"""
Pytest configuration and fixtures for notification stream tests.
"""

import asyncio
import logging
from typing import List

import pytest

from notification_streams.config import NotificationStreamConfig
from notification_streams.models import (
    ReadyState, RegisteredController, SessionError, StreamCategory, StreamKey
)
from notification_streams.reconnect import ReconnectScheduler

logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

CONTROLLER_URL = "http://controller.local:8080/stream"


async def settle(rounds: int = 20) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Simulated clock for asyncio sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []
        self._waiters = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + delay, future))
        await future

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        for deadline, future in list(self._waiters):
            if deadline <= self.now:
                self._waiters.remove((deadline, future))
                if not future.done():
                    future.set_result(None)
        await settle()


class FakeSession:
    """Stand-in for StreamSession with scriptable failures."""

    def __init__(self, url, controller, category, on_message, user, password,
                 error_listener=None, config=None):
        self.url = url
        self.controller = controller
        self.category = StreamCategory(category)
        self.key = StreamKey.for_controller(controller, self.category)
        self.on_message = on_message
        self.user = user
        self.password = password
        self.error_listener = error_listener
        self.config = config
        self.started = False
        self.closed = False
        self.close_calls = 0
        self.fail_close = False

    def start(self):
        self.started = True

    async def close(self):
        self.close_calls += 1
        if self.fail_close:
            raise RuntimeError("close failed")
        self.closed = True

    def emit(self, payload):
        return self.on_message(payload, self.controller.name, self.controller.release, self.url)

    def fail(self, fatal: bool = True):
        """Signal a transport error the way a session reports it."""
        state = ReadyState.CLOSED if fatal else ReadyState.CONNECTING
        event = SessionError(cause=ConnectionError("connection dropped"), ready_state=state)
        if self.error_listener:
            self.error_listener(self, event)


class FakeSessionFactory:
    """Session factory recording every session it creates."""

    def __init__(self):
        self.sessions: List[FakeSession] = []

    def __call__(self, *args, **kwargs):
        session = FakeSession(*args, **kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def controller():
    return RegisteredController(name="ctrl1", release="v1")


@pytest.fixture
def config():
    return NotificationStreamConfig()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def scheduler(fake_clock):
    return ReconnectScheduler(sleep=fake_clock.sleep)


@pytest.fixture
def session_factory():
    return FakeSessionFactory()
