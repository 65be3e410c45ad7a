"""
Centralized configuration for the notification loops.

All settings come from environment variables (.env / .env.local are loaded
by main.py). Loop settings are assembled into frozen dataclasses so the
monitors receive one validated object per loop.
"""

import os
from dataclasses import dataclass
from datetime import timedelta

from .errors import ConfigurationMissing

DEFAULT_ITT_API_BASE = "https://islandtrolltribes.com"
DEFAULT_WC3STATS_API_BASE = "https://api.wc3stats.com"
DEFAULT_LOBBY_MAP_PREFIX = "island.troll.tribes"

USER_AGENT = "ITT-Discord-Bot/1.0"

# Repeated "nothing new" / "tick skipped" lines are logged at most this often
QUIET_LOG_INTERVAL = timedelta(minutes=5)


def _get_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("true", "1", "yes")


def _get_number(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationMissing(name, f"not a number: {value!r}")
    if number <= 0:
        raise ConfigurationMissing(name, f"must be positive, got {value!r}")
    return number


def _get_channel_id(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigurationMissing(name)
    if not value.isdigit():
        raise ConfigurationMissing(name, f"not a Discord channel ID: {value!r}")
    return value


def get_itt_api_base() -> str:
    return os.environ.get("ITT_API_BASE", DEFAULT_ITT_API_BASE).rstrip("/")


def get_wc3stats_api_base() -> str:
    return os.environ.get("WC3STATS_API_BASE", DEFAULT_WC3STATS_API_BASE).rstrip("/")


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class LobbySettings:
    channel_id: str
    interval_seconds: float
    map_prefix: str
    active_window: timedelta
    retire_grace: timedelta
    retention: timedelta
    cleanup_interval: timedelta


@dataclass(frozen=True)
class CompletedGamesSettings:
    channel_id: str
    interval_seconds: float
    fetch_limit: int
    active_window: timedelta
    retention: timedelta
    cleanup_interval: timedelta


@dataclass(frozen=True)
class ReminderSettings:
    interval_seconds: float
    lead_minutes: int
    max_lookback: timedelta
    retention: timedelta
    cleanup_interval: timedelta


def lobby_monitoring_enabled() -> bool:
    return _get_bool("LOBBY_MONITORING_ENABLED", True)


def completed_games_monitoring_enabled() -> bool:
    return _get_bool("COMPLETED_GAMES_MONITORING_ENABLED", True)


def reminders_enabled() -> bool:
    return _get_bool("REMINDERS_ENABLED", True)


def get_lobby_settings() -> LobbySettings:
    """
    Raises:
        ConfigurationMissing: If the channel is unset or a number is invalid
    """
    interval = _get_number("LOBBY_CHECK_INTERVAL", 60)
    # Default grace tolerates one missed poll
    grace = _get_number("LOBBY_RETIRE_GRACE_SECONDS", 2 * interval)
    return LobbySettings(
        channel_id=_get_channel_id("LOBBY_NOTIFICATION_CHANNEL_ID"),
        interval_seconds=interval,
        map_prefix=os.environ.get("LOBBY_MAP_PREFIX", DEFAULT_LOBBY_MAP_PREFIX).lower(),
        active_window=timedelta(minutes=_get_number("LOBBY_ACTIVE_WINDOW_MINUTES", 60)),
        retire_grace=timedelta(seconds=grace),
        retention=timedelta(hours=_get_number("LOBBY_RETENTION_HOURS", 24)),
        cleanup_interval=timedelta(
            hours=_get_number("LOBBY_CLEANUP_INTERVAL_HOURS", 24)
        ),
    )


def get_completed_games_settings() -> CompletedGamesSettings:
    """
    Raises:
        ConfigurationMissing: If the channel is unset or a number is invalid
    """
    return CompletedGamesSettings(
        channel_id=_get_channel_id("COMPLETED_GAMES_NOTIFICATION_CHANNEL_ID"),
        interval_seconds=_get_number("COMPLETED_GAMES_CHECK_INTERVAL", 120),
        fetch_limit=int(_get_number("COMPLETED_GAMES_FETCH_LIMIT", 10)),
        active_window=timedelta(
            hours=_get_number("COMPLETED_GAMES_ACTIVE_WINDOW_HOURS", 24)
        ),
        retention=timedelta(days=_get_number("COMPLETED_GAMES_RETENTION_DAYS", 7)),
        cleanup_interval=timedelta(
            days=_get_number("COMPLETED_GAMES_CLEANUP_INTERVAL_DAYS", 7)
        ),
    )


def get_reminder_settings() -> ReminderSettings:
    return ReminderSettings(
        interval_seconds=_get_number("REMINDER_CHECK_INTERVAL", 60),
        lead_minutes=int(_get_number("REMINDER_MINUTES_BEFORE", 10)),
        max_lookback=timedelta(
            minutes=_get_number("REMINDER_MAX_LOOKBACK_MINUTES", 15)
        ),
        # Only terminal records left behind by a failed delete
        retention=timedelta(days=_get_number("REMINDER_RETENTION_DAYS", 1)),
        cleanup_interval=timedelta(
            hours=_get_number("REMINDER_CLEANUP_INTERVAL_HOURS", 24)
        ),
    )


# Required environment variables
# Format: (name, description)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string"),
    ("DISCORD_BOT_TOKEN", "Discord bot token"),
]


def check_required_env_vars() -> list[str]:
    """Return warning lines for required variables that are not set."""
    return [
        f"  ⚠ {name}: Not set ({description})"
        for name, description in REQUIRED_ENV_VARS
        if not os.environ.get(name)
    ]
