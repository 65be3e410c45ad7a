"""Tests for NotificationStore against in-memory SQLite."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from notifier.enums import NotificationStatus, ReminderStatus
from notifier.errors import StoreUnavailable
from notifier.store import NotificationStore

from .fakes import T0


class TestUpsertAndGet:
    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, engine):
        store = NotificationStore("lobby_notifications")
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_insert_then_get(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert(
            "42",
            {
                "status": NotificationStatus.notified,
                "notified_at": T0,
                "outward_handle": "999",
                "fingerprint": {"slotsTaken": 2},
            },
        )

        record = await store.get("42")
        assert record.status == "notified"
        assert record.notified_at == T0
        assert record.outward_handle == "999"
        assert record.fingerprint == {"slotsTaken": 2}
        assert record.data == {}

    @pytest.mark.asyncio
    async def test_merge_keeps_unspecified_fields(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("42", {"status": "notified", "outward_handle": "999"})

        await store.upsert("42", {"status": "updated", "last_updated_at": T0})

        record = await store.get("42")
        assert record.status == "updated"
        assert record.outward_handle == "999"
        assert record.last_updated_at == T0

    @pytest.mark.asyncio
    async def test_replace_clears_unspecified_fields(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("42", {"status": "notified", "outward_handle": "999"})

        await store.upsert("42", {"status": "failed"}, merge=False)

        record = await store.get("42")
        assert record.status == "failed"
        assert record.outward_handle is None

    @pytest.mark.asyncio
    async def test_new_record_defaults_to_pending(self, engine):
        store = NotificationStore("game_reminders")
        await store.upsert("g1:u1", {"due_at": T0})
        record = await store.get("g1:u1")
        assert record.status == ReminderStatus.pending.value

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, engine):
        lobbies = NotificationStore("lobby_notifications")
        games = NotificationStore("completed_game_notifications")
        await lobbies.upsert("42", {"status": "notified"})

        assert await games.get("42") is None
        assert (await lobbies.get("42")).status == "notified"

    @pytest.mark.asyncio
    async def test_rejects_unknown_field(self, engine):
        store = NotificationStore("lobby_notifications")
        with pytest.raises(ValueError):
            await store.upsert("42", {"colour": "green"})


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_reports_whether_removed(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("42", {"status": "notified"})

        assert await store.delete("42") is True
        assert await store.delete("42") is False
        assert await store.get("42") is None

    @pytest.mark.asyncio
    async def test_batch_delete(self, engine):
        store = NotificationStore("lobby_notifications")
        for key in ("1", "2", "3"):
            await store.upsert(key, {"status": "notified"})

        deleted = await store.batch_delete(["1", "3", "missing"])

        assert deleted == 2
        assert await store.get("2") is not None

    @pytest.mark.asyncio
    async def test_batch_delete_empty_is_noop(self, engine):
        store = NotificationStore("lobby_notifications")
        assert await store.batch_delete([]) == 0


class TestQueries:
    @pytest.mark.asyncio
    async def test_query_by_field_orders_and_limits(self, engine):
        store = NotificationStore("game_reminders")
        await store.upsert("late", {"due_at": T0 + timedelta(minutes=10)})
        await store.upsert("early", {"due_at": T0 - timedelta(minutes=10)})
        await store.upsert("now", {"due_at": T0})

        due = await store.query_by_field("due_at", "<=", T0)
        assert [r.external_id for r in due] == ["early", "now"]

        first = await store.query_by_field("due_at", ">=", T0 - timedelta(hours=1), limit=1)
        assert [r.external_id for r in first] == ["early"]

    @pytest.mark.asyncio
    async def test_query_rejects_bad_operator(self, engine):
        store = NotificationStore("game_reminders")
        with pytest.raises(ValueError):
            await store.query_by_field("due_at", "~", T0)

    @pytest.mark.asyncio
    async def test_load_active_keys_by_id(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("recent", {"status": "notified", "last_seen_at": T0})
        await store.upsert(
            "old", {"status": "notified", "last_seen_at": T0 - timedelta(hours=2)}
        )

        active = await store.load_active("last_seen_at", T0 - timedelta(hours=1))

        assert set(active) == {"recent"}

    @pytest.mark.asyncio
    async def test_touch_refreshes_last_seen(self, engine):
        store = NotificationStore("lobby_notifications")
        await store.upsert("42", {"status": "notified", "last_seen_at": T0})

        later = T0 + timedelta(minutes=1)
        assert await store.touch(["42"], later) == 1
        assert (await store.get("42")).last_seen_at == later

    @pytest.mark.asyncio
    async def test_stale_keys_skips_pending(self, engine):
        store = NotificationStore("game_reminders")
        old = T0 - timedelta(days=2)
        await store.upsert("sent", {"status": "failed", "last_seen_at": old})
        await store.upsert("waiting", {"status": "pending", "last_seen_at": old})
        await store.upsert("fresh", {"status": "failed", "last_seen_at": T0})

        stale = await store.stale_keys("last_seen_at", T0 - timedelta(days=1), 10)

        assert stale == ["sent"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_database_errors_become_store_unavailable(self, engine):
        store = NotificationStore("lobby_notifications")
        error = OperationalError("SELECT", {}, Exception("connection refused"))

        with patch("notifier.store.get_connection", side_effect=error):
            with pytest.raises(StoreUnavailable):
                await store.get("42")

    @pytest.mark.asyncio
    async def test_os_errors_become_store_unavailable(self, engine):
        store = NotificationStore("lobby_notifications")

        with patch("notifier.store.get_transaction", side_effect=OSError("unreachable")):
            with pytest.raises(StoreUnavailable):
                await store.delete("42")
