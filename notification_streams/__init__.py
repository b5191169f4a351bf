"""
Notification Streams - persistent controller notification streams

Manages long-lived Server-Sent Events connections from remote controllers:
- Stream registry keyed by controller name, release and stream category
- Session lifecycle with fatal/transient error classification
- Automatic re-establishment after a fixed reconnect delay
- Explicit teardown per stream or per controller
"""

from .config import NotificationStreamConfig, load_config
from .error_handler import (
    NotificationStreamError, StreamConnectionError, FatalStreamError, TransientStreamError,
    is_fatal_error
)
from .logging_config import configure_logging, configure_service_logging
from .models import (
    StreamCategory, StreamKey, StreamEntry, RegisteredController, ReadyState, NotificationHandler,
    SessionOpened, MessageReceived, SessionError, SessionClosed
)
from .reconnect import ReconnectScheduler
from .registry import StreamRegistry
from .session import StreamSession
from .stream_management import NotificationStreamManager, StreamRequest

__version__ = "0.1.0"

STREAM_TYPE_CONFIGURATION = StreamCategory.CONFIGURATION
STREAM_TYPE_OPERATIONAL = StreamCategory.OPERATIONAL
STREAM_TYPE_DEVICE = StreamCategory.DEVICE

__all__ = [
    'NotificationStreamConfig',
    'load_config',
    'NotificationStreamError',
    'StreamConnectionError',
    'FatalStreamError',
    'TransientStreamError',
    'is_fatal_error',
    'configure_logging',
    'configure_service_logging',
    'StreamCategory',
    'StreamKey',
    'StreamEntry',
    'RegisteredController',
    'ReadyState',
    'NotificationHandler',
    'SessionOpened',
    'MessageReceived',
    'SessionError',
    'SessionClosed',
    'ReconnectScheduler',
    'StreamRegistry',
    'StreamSession',
    'NotificationStreamManager',
    'StreamRequest',
    'STREAM_TYPE_CONFIGURATION',
    'STREAM_TYPE_OPERATIONAL',
    'STREAM_TYPE_DEVICE',
]
