"""Tests for retention sweeps."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from notifier.errors import StoreUnavailable
from notifier.garbage import run_sweep, sweep
from notifier.store import NotificationStore

from .fakes import T0


class TestSweep:
    @pytest.mark.asyncio
    async def test_deletes_only_records_past_retention(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("old", {"status": "notified", "last_seen_at": T0 - timedelta(hours=25)})
        await store.upsert("fresh", {"status": "notified", "last_seen_at": T0 - timedelta(hours=1)})

        deleted = await sweep(store, timedelta(hours=24), now=T0)

        assert deleted == 1
        assert await store.get("old") is None
        assert await store.get("fresh") is not None

    @pytest.mark.asyncio
    async def test_pending_records_survive(self, engine):
        store = NotificationStore("game_reminders")
        await store.upsert("G1:1", {"status": "pending", "last_seen_at": T0 - timedelta(days=30)})

        assert await sweep(store, timedelta(days=7), now=T0) == 0
        assert await store.get("G1:1") is not None

    @pytest.mark.asyncio
    async def test_leftover_terminal_reminders_are_swept(self, engine):
        store = NotificationStore("game_reminders")
        stamp = T0 - timedelta(days=2)
        await store.upsert("G1:1", {"status": "sent", "notified_at": stamp, "last_seen_at": stamp})
        await store.upsert("G1:2", {"status": "failed", "notified_at": stamp, "last_seen_at": stamp})
        await store.upsert("G2:1", {"status": "pending", "due_at": T0 + timedelta(hours=1)})

        assert await sweep(store, timedelta(days=1), now=T0) == 2
        assert await store.get("G1:1") is None
        assert await store.get("G2:1") is not None

    @pytest.mark.asyncio
    async def test_batch_is_bounded(self, engine):
        store = NotificationStore("completed_game_notifications")
        for i in range(5):
            await store.upsert(str(i), {"status": "notified", "last_seen_at": T0 - timedelta(days=8, minutes=i)})

        assert await sweep(store, timedelta(days=7), now=T0, batch_size=3) == 3
        assert await sweep(store, timedelta(days=7), now=T0, batch_size=3) == 2

    @pytest.mark.asyncio
    async def test_nothing_stale_skips_delete(self):
        store = AsyncMock(spec=NotificationStore)
        store.stale_keys.return_value = []

        assert await sweep(store, timedelta(days=7), now=T0) == 0
        store.batch_delete.assert_not_awaited()


class TestRunSweep:
    @pytest.mark.asyncio
    async def test_store_failure_is_logged_not_raised(self, caplog):
        store = AsyncMock(spec=NotificationStore)
        store.collection = "lobby_notifications"
        store.stale_keys.side_effect = StoreUnavailable("down")

        assert await run_sweep(store, timedelta(hours=24)) == 0
        assert "Cleanup of lobby_notifications failed" in caplog.text
