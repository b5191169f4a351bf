"""Tests for the stream registry."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from notification_streams.models import StreamCategory, StreamKey
from notification_streams.registry import StreamRegistry


def make_session():
    session = MagicMock()
    session.close = AsyncMock()
    return session


class TestStreamRegistry:
    """Test StreamRegistry functionality."""

    @pytest.fixture
    def registry(self):
        return StreamRegistry(close_timeout=1.0)

    @pytest.fixture
    def key(self):
        return StreamKey("ctrl1", "v1", StreamCategory.DEVICE)

    def test_add_creates_entry_with_zero_counter(self, registry, key):
        session = make_session()

        entry = registry.add(key, session)

        assert entry.key == key
        assert entry.session is session
        assert entry.counter == 0
        assert entry.controller_key == "ctrl1-v1-DEVICE"
        assert registry.lookup(key) is entry
        assert len(registry) == 1

    def test_lookup_miss_returns_none(self, registry, key):
        assert registry.lookup(key) is None
        assert registry.exists(key) is False

    def test_increment_counter_counts_sequentially(self, registry, key):
        registry.add(key, make_session())

        values = [registry.increment_counter(key) for _ in range(5)]

        assert values == [1, 2, 3, 4, 5]
        assert registry.lookup(key).counter == 5

    def test_increment_counter_miss_returns_sentinel(self, registry, key, caplog):
        with caplog.at_level(logging.WARNING):
            assert registry.increment_counter(key) == -1

        assert len(registry) == 0
        assert registry.exists(key) is False
        assert "no stream found to increase counter" in caplog.text

    def test_duplicate_add_keeps_both_entries(self, registry, key, caplog):
        first = registry.add(key, make_session())
        with caplog.at_level(logging.WARNING):
            second = registry.add(key, make_session())

        assert len(registry) == 2
        assert [e.controller_key for e in registry.list_all()] == ["ctrl1-v1-DEVICE", "ctrl1-v1-DEVICE"]
        assert registry.lookup(key) is first
        assert second is not first
        assert "Duplicate notification stream" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_closes_session_and_deletes_entry(self, registry, key):
        session = make_session()
        registry.add(key, session)

        await registry.remove(key)

        session.close.assert_awaited_once()
        assert registry.exists(key) is False
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_remove_then_add_leaves_single_entry(self, registry, key):
        registry.add(key, make_session())

        await registry.remove(key)
        fresh = registry.add(key, make_session())

        assert registry.list_all() == [fresh]
        assert fresh.counter == 0

    @pytest.mark.asyncio
    async def test_remove_deletes_entry_when_close_fails(self, registry, key, caplog):
        session = make_session()
        session.close.side_effect = RuntimeError("socket already gone")
        registry.add(key, session)

        with caplog.at_level(logging.ERROR):
            await registry.remove(key)

        assert registry.exists(key) is False
        assert "could not be closed" in caplog.text
        assert "ctrl1-v1-DEVICE" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_bounds_hanging_close(self, key, caplog):
        registry = StreamRegistry(close_timeout=0.01)
        session = make_session()

        async def hang():
            await asyncio.sleep(10)

        session.close = hang
        registry.add(key, session)

        with caplog.at_level(logging.ERROR):
            await registry.remove(key)

        assert registry.exists(key) is False
        assert "could not be closed" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_miss_is_noop(self, registry, key):
        await registry.remove(key)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_remove_with_session_only_removes_owner(self, registry, key):
        stale = make_session()
        current = make_session()
        registry.add(key, current)

        await registry.remove(key, session=stale)

        stale.close.assert_not_awaited()
        current.close.assert_not_awaited()
        assert registry.lookup(key).session is current

    @pytest.mark.asyncio
    async def test_remove_clears_duplicates(self, registry, key):
        sessions = [make_session(), make_session()]
        for session in sessions:
            registry.add(key, session)

        await registry.remove(key)

        assert len(registry) == 0
        for session in sessions:
            session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove_all_for_controller(self, registry):
        sessions = {}
        for category in StreamCategory:
            sessions[category] = make_session()
            registry.add(StreamKey("ctrl1", "v1", category), sessions[category])
        other = StreamKey("ctrl2", "v1", StreamCategory.DEVICE)
        registry.add(other, make_session())

        sessions[StreamCategory.OPERATIONAL].close.side_effect = RuntimeError("close failed")

        await registry.remove_all_for_controller("ctrl1", "v1")

        assert [e.key for e in registry.list_all()] == [other]
        for session in sessions.values():
            session.close.assert_awaited_once()

    def test_list_all_is_snapshot_in_insertion_order(self, registry):
        keys = [
            StreamKey("ctrl1", "v1", StreamCategory.DEVICE),
            StreamKey("ctrl2", "v2", StreamCategory.CONFIGURATION),
            StreamKey("ctrl1", "v1", StreamCategory.OPERATIONAL),
        ]
        for key in keys:
            registry.add(key, make_session())

        snapshot = registry.list_all()
        registry.add(StreamKey("ctrl3", "v1", StreamCategory.DEVICE), make_session())

        assert [e.key for e in snapshot] == keys
        assert len(registry.list_all()) == 4

    def test_add_assigns_sequence_per_registry(self, registry, key):
        first = registry.add(key, make_session())
        second = registry.add(StreamKey("ctrl2", "v1", StreamCategory.DEVICE), make_session())
        other = StreamRegistry().add(key, make_session())

        assert (first.sequence, second.sequence) == (0, 1)
        assert other.sequence == 0
