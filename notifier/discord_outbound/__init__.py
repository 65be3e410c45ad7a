# notifier/discord_outbound/__init__.py
"""Discord outbound operations - all Discord API calls go through here."""

from .bot import get_bot, get_dm_semaphore, require_bot, set_bot
from .messages import (
    delete_channel_message,
    edit_channel_message,
    send_channel_message,
    send_dm,
)

__all__ = [
    "set_bot",
    "get_bot",
    "require_bot",
    "get_dm_semaphore",
    "send_dm",
    "send_channel_message",
    "edit_channel_message",
    "delete_channel_message",
]
