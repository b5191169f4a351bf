"""
Notification stream management.

Starts controller notification streams, keeps them in the stream registry and
re-establishes a stream after a fatal connection error:

    REQUESTED -> CONNECTING -> ACTIVE -> FAILED -> (wait reconnect_delay) -> CONNECTING

There is no retry limit and no backoff growth. An explicit removal stops the
chain for that stream, including a reconnect that is still waiting.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from .config import NotificationStreamConfig
from .error_handler import describe_error
from .models import (
    NotificationHandler, RegisteredController, SessionError, StreamCategory,
    StreamEntry, StreamKey
)
from .reconnect import ReconnectScheduler
from .registry import StreamRegistry
from .session import StreamSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., Any]


@dataclass(frozen=True)
class StreamRequest:
    """Everything needed to (re)open one stream."""
    target_url: str
    controller: RegisteredController
    on_message: NotificationHandler
    category: StreamCategory
    user: str
    password: str = field(repr=False)

    @property
    def key(self) -> StreamKey:
        return StreamKey.for_controller(self.controller, self.category)


class NotificationStreamManager:
    """
    Owns the stream registry and the reconnection protocol.

    Starting the same stream twice without removing it first leaves two
    entries under one key; use check_if_stream_is_active() before starting.
    """

    def __init__(self,
                 config: Optional[NotificationStreamConfig] = None,
                 registry: Optional[StreamRegistry] = None,
                 scheduler: Optional[ReconnectScheduler] = None,
                 session_factory: Optional[SessionFactory] = None):
        self.config = config or NotificationStreamConfig()
        self.registry = registry or StreamRegistry(close_timeout=self.config.close_timeout)
        self.scheduler = scheduler or ReconnectScheduler()
        self.session_factory = session_factory or StreamSession

        self._recovery_tasks: Set[asyncio.Task] = set()
        # Bumped on every explicit removal so in-flight recoveries do not reschedule
        self._teardowns: Dict[StreamKey, int] = {}

    async def start_stream(self,
                           target_url: str,
                           controller: RegisteredController,
                           on_message: NotificationHandler,
                           category: StreamCategory,
                           user: str,
                           password: str) -> Any:
        """
        Open a stream and register it.

        The entry is registered before the controller confirms the connection.

        Returns:
            The new session
        """
        request = StreamRequest(
            target_url=target_url,
            controller=controller,
            on_message=on_message,
            category=StreamCategory(category),
            user=user,
            password=password,
        )
        return self._open(request)

    def add_stream_item(self, name: str, release: str, session: Any, category: StreamCategory) -> StreamEntry:
        return self.registry.add(StreamKey(name, release, StreamCategory(category)), session)

    def retrieve_element(self, name: str, release: str, category: StreamCategory) -> Optional[StreamEntry]:
        return self.registry.lookup(StreamKey(name, release, StreamCategory(category)))

    async def remove_stream_item(self, name: str, release: str, category: StreamCategory) -> None:
        """Tear down one stream and cancel its pending reconnect."""
        key = StreamKey(name, release, StreamCategory(category))
        self._mark_teardown(key)
        await self.registry.remove(key)

    async def remove_all_streams_for_controller(self, name: str, release: str) -> None:
        """Tear down the configuration, operational and device streams of a controller."""
        for category in StreamCategory:
            self._mark_teardown(StreamKey(name, release, category))
        await self.registry.remove_all_for_controller(name, release)
        logger.debug("Removed all notification streams for %s-%s", name, release)

    def check_if_stream_is_active(self, controller: RegisteredController, category: StreamCategory) -> bool:
        return self.registry.exists(StreamKey.for_controller(controller, category))

    def increase_counter(self, name: str, release: str, category: StreamCategory) -> int:
        """Count a processed event. Returns the new count or -1 when no stream exists."""
        return self.registry.increment_counter(StreamKey(name, release, StreamCategory(category)))

    def get_all_elements(self) -> List[StreamEntry]:
        return self.registry.list_all()

    def get_status(self) -> Dict[str, Any]:
        """Diagnostic snapshot of streams and pending reconnects."""
        entries = self.registry.list_all()
        return {
            "total_streams": len(entries),
            "pending_reconnects": [str(key) for key in self.scheduler.pending_keys()],
            "streams": [entry.to_dict() for entry in entries],
        }

    async def shutdown(self) -> None:
        """Cancel pending reconnects and close every stream."""
        cancelled = self.scheduler.cancel_all()
        keys = self.registry.keys()
        for key in keys:
            self._mark_teardown(key)
            await self.registry.remove(key)

        if self._recovery_tasks:
            await asyncio.gather(*list(self._recovery_tasks), return_exceptions=True)

        logger.info("Notification streams shut down (%d streams closed, %d reconnects cancelled)",
                    len(keys), cancelled)

    def _open(self, request: StreamRequest) -> Any:
        key = request.key
        logger.debug("starting eventsource %s for %s", request.target_url, key)

        session = self.session_factory(
            request.target_url,
            request.controller,
            request.category,
            request.on_message,
            request.user,
            request.password,
            error_listener=lambda failed, event: self._on_session_error(request, failed, event),
            config=self.config,
        )
        self.registry.add(key, session)
        session.start()
        return session

    def _on_session_error(self, request: StreamRequest, session: Any, event: SessionError) -> None:
        if not event.is_fatal:
            return

        # Recovery closes the session, so it must not run inside the session's own task
        teardown_generation = self._teardowns.get(request.key, 0)
        task = asyncio.create_task(self._recover(request, session, event, teardown_generation),
                                   name=f"recover-{request.key}")
        self._recovery_tasks.add(task)
        task.add_done_callback(self._recovery_tasks.discard)

    async def _recover(self, request: StreamRequest, session: Any, event: SessionError,
                       teardown_generation: int) -> None:
        key = request.key
        name = request.controller.name
        category = request.category.value

        logger.error("%s: SSE-Connection to controller interrupted (%s, %s): %s",
                     name, category, key, describe_error(event.cause))

        removed = await self.registry.remove(key, session=session)
        if not removed:
            logger.debug("%s: Stream %s no longer registered, not reconnecting", name, category)
            return
        logger.debug("%s: Closed old stream %s", name, category)

        if self._teardowns.get(key, 0) != teardown_generation:
            logger.debug("%s: Stream %s was removed explicitly, not reconnecting", name, category)
            return

        logger.debug("%s: Trying to reconnect %s after %s seconds", name, category, self.config.reconnect_delay)
        self.scheduler.schedule(key, self.config.reconnect_delay, lambda: self._reconnect(request))

    async def _reconnect(self, request: StreamRequest) -> None:
        self._open(request)
        logger.debug("%s: Stream reestablished %s", request.controller.name, request.category.value)

    def _mark_teardown(self, key: StreamKey) -> None:
        self._teardowns[key] = self._teardowns.get(key, 0) + 1
        self.scheduler.cancel(key)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()
