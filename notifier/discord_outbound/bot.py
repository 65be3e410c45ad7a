# notifier/discord_outbound/bot.py
"""The connected bot, shared with the outbound helpers."""

import asyncio

from discord import Client

_bot: Client | None = None
_dm_semaphore: asyncio.Semaphore | None = None


def set_bot(bot: Client | None) -> None:
    """Set (or clear) the bot. Called from on_ready, so again after every reconnect."""
    global _bot, _dm_semaphore
    _bot = bot
    if bot is None:
        _dm_semaphore = None
    elif _dm_semaphore is None:
        # Kept across reconnects so queued DMs stay serialized
        _dm_semaphore = asyncio.Semaphore(1)


def get_bot() -> Client | None:
    return _bot


def require_bot() -> Client:
    """
    Raises:
        RuntimeError: If no bot is connected yet (treated as transient by callers)
    """
    if _bot is None:
        raise RuntimeError("Discord bot not configured for notifications")
    return _bot


def get_dm_semaphore() -> asyncio.Semaphore | None:
    """Serializes DMs to stay under Discord's rate limit."""
    return _dm_semaphore
