"""Data models for notification streams."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, NamedTuple, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict


class StreamCategory(str, Enum):
    """Kind of notifications carried by a stream."""
    CONFIGURATION = "CONFIGURATION"
    OPERATIONAL = "OPERATIONAL"
    DEVICE = "DEVICE"


class ReadyState(IntEnum):
    """Connection states as reported by an event stream transport."""
    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


class RegisteredController(BaseModel):
    """Identity of a remote controller pushing notifications."""

    model_config = ConfigDict(frozen=True)

    name: str
    release: str


class StreamKey(NamedTuple):
    """Composite identity of a logical stream slot."""

    controller_name: str
    controller_release: str
    category: StreamCategory

    @classmethod
    def for_controller(cls, controller: RegisteredController, category: StreamCategory) -> "StreamKey":
        return cls(controller.name, controller.release, StreamCategory(category))

    def __str__(self) -> str:
        return f"{self.controller_name}-{self.controller_release}-{self.category.value}"


class NotificationHandler(Protocol):
    """Receives every event payload pushed by a controller."""

    def __call__(self, payload: str, name: str, release: str, url: str) -> Any:
        ...


@dataclass
class StreamEntry:
    """
    Registry record of one stream.

    A reconnect always produces a fresh entry, so ``counter`` only ever
    counts events recorded against this particular session.
    """
    key: StreamKey
    session: Any
    counter: int = 0
    sequence: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def controller_key(self) -> str:
        return str(self.key)

    def increment(self) -> int:
        self.counter += 1
        return self.counter

    def to_dict(self) -> Dict[str, Any]:
        """Diagnostic view of the entry."""
        result = {
            "controller_key": self.controller_key,
            "category": self.key.category.value,
            "counter": self.counter,
            "created_at": self.created_at.isoformat(),
        }
        get_stats = getattr(self.session, "get_stats", None)
        if callable(get_stats):
            result["session"] = get_stats()
        return result


# Session events, fed through StreamSession.dispatch()

@dataclass(frozen=True)
class SessionOpened:
    pass


@dataclass(frozen=True)
class MessageReceived:
    data: str
    event_type: str = "message"
    last_event_id: Optional[str] = None


@dataclass(frozen=True)
class SessionError:
    cause: BaseException
    ready_state: ReadyState

    @property
    def is_fatal(self) -> bool:
        """A closed ready state means the connection is gone for good."""
        return self.ready_state == ReadyState.CLOSED


@dataclass(frozen=True)
class SessionClosed:
    pass


SessionEvent = Union[SessionOpened, MessageReceived, SessionError, SessionClosed]
