"""
Per-user game reminders.

Scheduling a reminder is a store write: one pending record per
(game, user) keyed "{game_id}:{user_id}", due lead_minutes before the game
starts. DueReminderSource turns the pending records that have come due into
entities for the reminder loop, which delivers them by DM.
"""

import logging
from datetime import datetime, timedelta

from .config import get_reminder_settings
from .embeds import game_time_of
from .enums import ReminderStatus
from .errors import SourceUnavailable, StoreUnavailable
from .sources.itt_api import get_game_id
from .store import NotificationStore
from .timezone import ensure_utc, utc_now
from .types import Entity

logger = logging.getLogger(__name__)


def reminder_key(game_id: str, user_id: str) -> str:
    return f"{game_id}:{user_id}"


async def schedule_game_reminder(
    store: NotificationStore,
    user_id: str,
    game: dict,
    lead_minutes: int | None = None,
    now: datetime | None = None,
) -> datetime | None:
    """
    Schedule a DM reminder for one user about one scheduled game.

    Re-scheduling the same game for the same user replaces the earlier
    reminder (e.g. after the game was moved).
    lead_minutes defaults to REMINDER_MINUTES_BEFORE.

    Returns:
        The time the reminder is due, or None if the game has no usable
        id/start time or the reminder time has already passed.

    Raises:
        StoreUnavailable: If the reminder could not be saved
    """
    if lead_minutes is None:
        lead_minutes = get_reminder_settings().lead_minutes
    now = now or utc_now()
    game_id = get_game_id(game)
    game_time = game_time_of(game)
    if game_id is None or game_time is None:
        logger.warning(f"Cannot schedule reminder for user {user_id}: game has no id or start time")
        return None

    game_time = ensure_utc(game_time)
    due_at = game_time - timedelta(minutes=lead_minutes)
    if due_at <= now:
        logger.info(f"Reminder for game {game_id} / user {user_id} would be in the past, skipping")
        return None

    await store.upsert(
        reminder_key(game_id, user_id),
        {
            "status": ReminderStatus.pending,
            "due_at": due_at,
            "last_seen_at": now,
            "data": {
                "user_id": str(user_id),
                "game_id": game_id,
                "game_time": game_time.isoformat(),
                "lead_minutes": lead_minutes,
            },
        },
        merge=False,
    )
    logger.info(f"Scheduled reminder for game {game_id} / user {user_id} at {due_at.isoformat()}")
    return due_at


async def cancel_game_reminder(store: NotificationStore, user_id: str, game_id: str) -> bool:
    """Cancel a reminder. Returns True if one was pending."""
    removed = await store.delete(reminder_key(game_id, user_id))
    if removed:
        logger.info(f"Cancelled reminder for game {game_id} / user {user_id}")
    return removed


class DueReminderSource:
    """Pending reminders whose due time has arrived."""

    def __init__(self, store: NotificationStore):
        self.store = store

    async def fetch_snapshot(self) -> list[Entity]:
        now = utc_now()
        try:
            records = await self.store.query_by_field("due_at", "<=", now)
        except StoreUnavailable as e:
            raise SourceUnavailable(f"Could not read due reminders: {e}") from e
        return [
            Entity(
                external_id=record.external_id,
                payload=record.data,
                observed_at=now,
                created_at=record.due_at,
            )
            for record in records
            if record.status == ReminderStatus.pending.value
        ]
