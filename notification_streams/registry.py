"""
Stream registry for controller notification streams.

Keeps the live entries keyed by (controller name, release, category) and owns
closing their sessions on removal.
"""

import asyncio
import itertools
import logging
import threading
from typing import Any, Dict, List, Optional

from .error_handler import log_close_failure
from .models import StreamCategory, StreamEntry, StreamKey

logger = logging.getLogger(__name__)


class StreamRegistry:
    """In-memory registry of stream entries."""

    def __init__(self, close_timeout: Optional[float] = 10.0):
        self.close_timeout = close_timeout
        # Lists only hold more than one entry when a caller started the same
        # stream twice without removing it first.
        self._entries: Dict[StreamKey, List[StreamEntry]] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count()

    def add(self, key: StreamKey, session: Any) -> StreamEntry:
        """Register a session under key with a fresh counter."""
        entry = StreamEntry(key=key, session=session)
        with self._lock:
            entry.sequence = next(self._sequence)
            bucket = self._entries.setdefault(key, [])
            if bucket:
                logger.warning("Duplicate notification stream registered for %s (%d entries)",
                               key, len(bucket) + 1)
            bucket.append(entry)

        logger.debug("notification streams after adding: %s",
                     ", ".join(e.controller_key for e in self.list_all()))
        return entry

    def lookup(self, key: StreamKey) -> Optional[StreamEntry]:
        with self._lock:
            bucket = self._entries.get(key)
            return bucket[0] if bucket else None

    def exists(self, key: StreamKey) -> bool:
        return self.lookup(key) is not None

    def increment_counter(self, key: StreamKey) -> int:
        """
        Increase the event counter of the entry for key.

        Returns:
            New counter value, or -1 when no entry exists
        """
        with self._lock:
            bucket = self._entries.get(key)
            if bucket:
                return bucket[0].increment()

        logger.warning("no stream found to increase counter for: %s", key)
        return -1

    async def remove(self, key: StreamKey, session: Any = None) -> bool:
        """
        Close and remove the entries for key.

        When session is given only the entry owning that session is removed,
        so a stale failure cannot tear down a newer stream. Close failures are
        logged; the entry is removed regardless.

        Returns:
            True if any entry was removed
        """
        with self._lock:
            targets = [
                entry for entry in self._entries.get(key, [])
                if session is None or entry.session is session
            ]

        if not targets:
            logger.debug("No stream item to remove for %s", key)
            return False

        for entry in targets:
            await self._close_session(entry)

            with self._lock:
                bucket = [e for e in self._entries.get(key, []) if e is not entry]
                if bucket:
                    self._entries[key] = bucket
                else:
                    self._entries.pop(key, None)
            logger.debug("removed stream item for %s", key)
        return True

    async def remove_all_for_controller(self, name: str, release: str) -> None:
        """Remove the configuration, operational and device streams of a controller."""
        for category in StreamCategory:
            await self.remove(StreamKey(name, release, category))

    def list_all(self) -> List[StreamEntry]:
        """Snapshot of all entries in insertion order."""
        with self._lock:
            entries = [entry for bucket in self._entries.values() for entry in bucket]
        return sorted(entries, key=lambda entry: entry.sequence)

    def keys(self) -> List[StreamKey]:
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._entries.values())

    async def _close_session(self, entry: StreamEntry) -> None:
        try:
            if self.close_timeout:
                await asyncio.wait_for(entry.session.close(), timeout=self.close_timeout)
            else:
                await entry.session.close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_close_failure(logger, entry.key, e)
