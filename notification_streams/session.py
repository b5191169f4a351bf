"""
Stream session for controller notification streams.

One session wraps one long-lived event-stream connection. Everything that
happens on the connection is fed through ``dispatch()`` as a tagged event:

- SessionOpened: the controller accepted the request
- MessageReceived: an event arrived, forwarded to the notification handler
- SessionError: a transport problem; only fatal errors (closed ready state)
  are reported to the error listener
- SessionClosed: the session terminated, emitted once
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional

import httpx
from httpx_sse import aconnect_sse

from .config import NotificationStreamConfig
from .error_handler import (
    FatalStreamError, TransientStreamError, classify_transport_exception,
    describe_error, is_fatal_error
)
from .models import (
    MessageReceived, NotificationHandler, ReadyState, RegisteredController,
    SessionClosed, SessionError, SessionEvent, SessionOpened, StreamCategory, StreamKey
)

logger = logging.getLogger(__name__)

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

# Server errors an event stream resumes from; any other non-200 status closes it
RESUMABLE_STATUS_CODES = {500, 502, 503, 504}

SessionErrorListener = Callable[["StreamSession", SessionError], Any]


class StreamSession:
    """Event-stream connection to a single controller endpoint."""

    def __init__(self,
                 url: str,
                 controller: RegisteredController,
                 category: StreamCategory,
                 on_message: NotificationHandler,
                 user: str,
                 password: str,
                 error_listener: Optional[SessionErrorListener] = None,
                 config: Optional[NotificationStreamConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.controller = controller
        self.category = StreamCategory(category)
        self.key = StreamKey.for_controller(controller, self.category)
        self.on_message = on_message
        self.error_listener = error_listener
        self.config = config or NotificationStreamConfig()

        # Encoded once; the transport adds the Authorization header per request
        self.auth = httpx.BasicAuth(user, password)
        self.client = httpx.AsyncClient(
            auth=self.auth,
            timeout=httpx.Timeout(self.config.read_timeout, connect=self.config.connect_timeout),
            verify=self.config.verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

        self.ready_state = ReadyState.CONNECTING
        self.message_count = 0
        self.resume_attempts = 0
        self.retry_interval = self.config.default_retry_interval
        self.last_event_id: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._closing = False
        self._client_closed = False
        self._closed_emitted = False

    @property
    def is_closed(self) -> bool:
        return self.ready_state == ReadyState.CLOSED

    def start(self) -> None:
        """Open the connection in a background task."""
        if self._task is not None:
            return

        logger.debug("starting eventsource %s (%s)", self.url, self.key)
        self._task = asyncio.create_task(self._run(), name=f"notification-stream-{self.key}")

    async def close(self) -> None:
        """Terminate the session. Safe to call repeatedly; never raises."""
        self._closing = True

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error("Stream task for %s ended with error: %s", self.key, describe_error(e))

        if not self._client_closed:
            self._client_closed = True
            try:
                await self.client.aclose()
            except Exception as e:
                logger.error("Error closing HTTP client for %s: %s", self.key, describe_error(e))

        await self._emit_closed()

    async def dispatch(self, event: SessionEvent) -> None:
        """Apply one session event."""
        if isinstance(event, SessionOpened):
            self.ready_state = ReadyState.OPEN
            logger.debug("listening to stream for notifications: %s (%s)", self.url, self.key)

        elif isinstance(event, MessageReceived):
            await self._deliver(event)

        elif isinstance(event, SessionError):
            self.ready_state = event.ready_state
            logger.error("%s: SSE-Error on EventSource (%s), details: %s",
                         self.controller.name, self.category.value, describe_error(event.cause))
            if is_fatal_error(event):
                self._notify_fatal_error(event)

        elif isinstance(event, SessionClosed):
            self.ready_state = ReadyState.CLOSED
            logger.debug("EventSource closed (%s)", self.key)

        else:
            raise TypeError(f"Unknown session event: {event!r}")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "controller_key": str(self.key),
            "url": self.url,
            "ready_state": self.ready_state.name,
            "message_count": self.message_count,
            "resume_attempts": self.resume_attempts,
            "last_event_id": self.last_event_id,
        }

    async def _run(self) -> None:
        while not self._closing:
            try:
                await self._consume()
                raise TransientStreamError("Stream ended by remote")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._closing:
                    break

                resume_allowed = self.resume_attempts < self.config.max_resume_attempts
                error = classify_transport_exception(e, resume_allowed)
                await self.dispatch(error)
                if error.is_fatal:
                    break

                self.resume_attempts += 1
                logger.debug("Resuming %s in %.1f seconds (attempt %d/%d)", self.key,
                             self.retry_interval, self.resume_attempts, self.config.max_resume_attempts)
                await asyncio.sleep(self.retry_interval)

        self.ready_state = ReadyState.CLOSED
        await self._emit_closed()

    async def _consume(self) -> None:
        headers = {}
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        self.ready_state = ReadyState.CONNECTING

        async with aconnect_sse(self.client, "GET", self.url, headers=headers) as event_source:
            response = event_source.response
            if response.status_code in RESUMABLE_STATUS_CODES:
                raise TransientStreamError(f"Server error ({response.status_code})",
                                           status_code=response.status_code)
            if response.status_code != 200:
                raise FatalStreamError(f"Non-200 status code ({response.status_code})",
                                       status_code=response.status_code)

            # Checked here so a wrong content type closes the stream instead of resuming
            content_type = response.headers.get("content-type", "")
            if not content_type.lower().startswith(EVENT_STREAM_CONTENT_TYPE):
                raise FatalStreamError(f"Unexpected content type: {content_type or 'none'}")

            self.resume_attempts = 0
            await self.dispatch(SessionOpened())

            async for sse in event_source.aiter_sse():
                if self._closing:
                    break

                self._apply_retry(sse.retry)
                if sse.id:
                    self.last_event_id = sse.id
                if not sse.data:
                    continue

                await self.dispatch(MessageReceived(data=sse.data,
                                                    event_type=sse.event or "message",
                                                    last_event_id=self.last_event_id))

    def _apply_retry(self, retry: Any) -> None:
        if retry is None:
            return
        if not isinstance(retry, int) or isinstance(retry, bool) or retry < 0:
            logger.debug("Ignoring invalid retry field on %s: %r", self.key, retry)
            return
        self.retry_interval = retry / 1000

    async def _deliver(self, event: MessageReceived) -> None:
        if event.event_type != "message":
            logger.debug("Ignoring '%s' event on %s", event.event_type, self.key)
            return

        self.message_count += 1
        logger.debug("received event: %s", event.data)

        try:
            result = self.on_message(event.data, self.controller.name, self.controller.release, self.url)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Error in notification handler for %s: %s", self.key, e, exc_info=True)

    def _notify_fatal_error(self, event: SessionError) -> None:
        if self.error_listener is None:
            return
        try:
            self.error_listener(self, event)
        except Exception as e:
            logger.error("Error notifying stream error listener for %s: %s", self.key, e)

    async def _emit_closed(self) -> None:
        if self._closed_emitted:
            return
        self._closed_emitted = True
        await self.dispatch(SessionClosed())

    def __repr__(self) -> str:
        return f"StreamSession({self.key}, url={self.url!r}, ready_state={self.ready_state.name})"
