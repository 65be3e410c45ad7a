"""
Wiring of the notification loops.

Builds one NotificationInstance per notification kind from configuration,
wraps each in a PollingLoop and registers it with the scheduler together
with its retention sweep.
"""

import logging
from functools import partial

from .config import (
    CompletedGamesSettings,
    LobbySettings,
    ReminderSettings,
    completed_games_monitoring_enabled,
    get_completed_games_settings,
    get_lobby_settings,
    get_reminder_settings,
    lobby_monitoring_enabled,
    reminders_enabled,
)
from .constants import (
    COMPLETED_GAME_COLLECTION,
    COMPLETED_GAMES_CLEANUP_LOOP,
    COMPLETED_GAMES_LOOP,
    LOBBY_CLEANUP_LOOP,
    LOBBY_COLLECTION,
    LOBBY_LOOP,
    REMINDER_CLEANUP_LOOP,
    REMINDER_COLLECTION,
    REMINDER_LOOP,
)
from .database import is_configured
from .embeds import (
    create_completed_game_embed,
    create_lobby_embed,
    lobby_fingerprint,
    reminder_text,
)
from .errors import ConfigurationMissing
from .garbage import run_sweep
from .reconciler import NotificationInstance, Reconciler
from .reminders import DueReminderSource
from .scheduler import PollingLoop, init_scheduler, schedule_loop
from .sinks import ChannelSink, DirectMessageSink
from .sources import CompletedGamesSource, LobbySource
from .store import NotificationStore
from .types import Entity

logger = logging.getLogger(__name__)


def lobby_record_data(entity: Entity) -> dict:
    lobby = entity.payload
    return {"map": lobby.get("map"), "host": lobby.get("host"), "server": lobby.get("server")}


def completed_game_record_data(entity: Entity) -> dict:
    game = entity.payload
    return {"gamename": game.get("gamename"), "category": game.get("category")}


def build_lobby_instance(settings: LobbySettings, sink=None, source=None) -> NotificationInstance:
    """Lobbies: one message per open lobby, edited on change, deleted on close."""
    return NotificationInstance(
        name=LOBBY_LOOP,
        store=NotificationStore(LOBBY_COLLECTION),
        source=source or LobbySource(settings.map_prefix),
        render=create_lobby_embed,
        fingerprint=lobby_fingerprint,
        sink=sink or ChannelSink(settings.channel_id),
        record_data=lobby_record_data,
        supports_update=True,
        supports_retire=True,
        active_window=settings.active_window,
        retire_grace=settings.retire_grace,
    )


def build_completed_games_instance(
    settings: CompletedGamesSettings, sink=None, source=None
) -> NotificationInstance:
    """Completed games: posted once, never edited or removed."""
    return NotificationInstance(
        name=COMPLETED_GAMES_LOOP,
        store=NotificationStore(COMPLETED_GAME_COLLECTION),
        source=source or CompletedGamesSource(settings.fetch_limit),
        render=create_completed_game_embed,
        sink=sink or ChannelSink(settings.channel_id),
        record_data=completed_game_record_data,
        active_window=settings.active_window,
    )


def build_reminder_instance(
    settings: ReminderSettings, reminder_sink=None, store=None
) -> NotificationInstance:
    """Reminders: pending records come due and are DMed once."""
    store = store or NotificationStore(REMINDER_COLLECTION)
    return NotificationInstance(
        name=REMINDER_LOOP,
        store=store,
        source=DueReminderSource(store),
        render=reminder_text,
        reminder_sink=reminder_sink or DirectMessageSink(),
        recipient=lambda entity: entity.payload["user_id"],
        active_field="due_at",
        # Everything deliverable or expirable this tick
        active_window=settings.max_lookback * 2,
        max_lookback=settings.max_lookback,
    )


def _reconcile_loop(instance: NotificationInstance, interval_seconds: float) -> PollingLoop:
    reconciler = Reconciler(instance)
    return PollingLoop(instance.name, reconciler.run_tick, interval_seconds)


def _sweep_loop(name: str, collection: str, settings) -> PollingLoop:
    return PollingLoop(
        name,
        partial(run_sweep, NotificationStore(collection), settings.retention),
        settings.cleanup_interval.total_seconds(),
    )


def _lobby_loops() -> list[PollingLoop]:
    settings = get_lobby_settings()
    return [
        _reconcile_loop(build_lobby_instance(settings), settings.interval_seconds),
        _sweep_loop(LOBBY_CLEANUP_LOOP, LOBBY_COLLECTION, settings),
    ]


def _completed_games_loops() -> list[PollingLoop]:
    settings = get_completed_games_settings()
    return [
        _reconcile_loop(build_completed_games_instance(settings), settings.interval_seconds),
        _sweep_loop(COMPLETED_GAMES_CLEANUP_LOOP, COMPLETED_GAME_COLLECTION, settings),
    ]


def _reminder_loops() -> list[PollingLoop]:
    settings = get_reminder_settings()
    return [
        _reconcile_loop(build_reminder_instance(settings), settings.interval_seconds),
        _sweep_loop(REMINDER_CLEANUP_LOOP, REMINDER_COLLECTION, settings),
    ]


# (label, enabled check, loop factory)
_MONITORS = [
    ("Lobby monitoring", lobby_monitoring_enabled, _lobby_loops),
    ("Completed games monitoring", completed_games_monitoring_enabled, _completed_games_loops),
    ("Game reminders", reminders_enabled, _reminder_loops),
]


def build_loops() -> list[PollingLoop]:
    """
    Loops for every enabled, fully configured monitor.

    A monitor with missing configuration is skipped with one warning; the
    others still start.
    """
    loops = []
    for label, enabled, factory in _MONITORS:
        if not enabled():
            logger.info(f"{label} disabled")
            continue
        try:
            loops.extend(factory())
        except ConfigurationMissing as e:
            logger.warning(f"{label} not started, configuration missing: {e}")
    return loops


def start_monitors() -> list[PollingLoop]:
    """Start the scheduler and register every loop. Each runs once immediately."""
    if not is_configured():
        logger.warning("DATABASE_URL not set, notification loops not started")
        return []

    init_scheduler()
    loops = build_loops()
    for loop in loops:
        schedule_loop(loop)
    logger.info(f"Started {len(loops)} notification loop(s)")
    return loops
