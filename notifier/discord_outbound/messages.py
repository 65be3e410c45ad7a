# notifier/discord_outbound/messages.py
"""
Channel messages and DMs.

Discord errors are mapped onto the notifier error taxonomy:
- the referenced message is gone -> SinkNotFound
- Discord refuses delivery (Forbidden, unknown user) -> SinkDeliveryFailed
Anything else (rate limits, 5xx, bot not connected) propagates as-is and
is treated as transient by the caller.
"""

import asyncio

import discord

from ..errors import SinkDeliveryFailed, SinkNotFound
from .bot import get_dm_semaphore, require_bot

# Content is plain text or a single embed
MessageContent = str | discord.Embed


def _content_kwargs(content: MessageContent) -> dict:
    if isinstance(content, discord.Embed):
        return {"content": None, "embed": content}
    return {"content": content, "embed": None}


async def _fetch_channel(channel_id: str):
    bot = require_bot()
    channel = bot.get_channel(int(channel_id))
    if channel is None:
        try:
            channel = await bot.fetch_channel(int(channel_id))
        except discord.NotFound as e:
            raise SinkDeliveryFailed(f"Channel {channel_id} not found") from e
        except discord.Forbidden as e:
            raise SinkDeliveryFailed(f"No access to channel {channel_id}") from e
    return channel


async def send_channel_message(channel_id: str, content: MessageContent) -> str:
    """Send a message to a channel. Returns the new message ID."""
    channel = await _fetch_channel(channel_id)
    try:
        message = await channel.send(**_content_kwargs(content))
    except discord.Forbidden as e:
        raise SinkDeliveryFailed(f"Cannot post in channel {channel_id}: {e}") from e
    return str(message.id)


async def edit_channel_message(
    channel_id: str, message_id: str, content: MessageContent
) -> None:
    """
    Edit a previously sent message in place.

    Raises:
        SinkNotFound: If the message was deleted
    """
    channel = await _fetch_channel(channel_id)
    message = channel.get_partial_message(int(message_id))
    try:
        await message.edit(**_content_kwargs(content))
    except discord.NotFound as e:
        raise SinkNotFound(f"Message {message_id} not found") from e


async def delete_channel_message(channel_id: str, message_id: str) -> bool:
    """Delete a message. Returns False if it was already gone."""
    channel = await _fetch_channel(channel_id)
    message = channel.get_partial_message(int(message_id))
    try:
        await message.delete()
    except discord.NotFound:
        return False
    return True


async def send_dm(discord_id: str, message: str) -> None:
    """
    Send a DM to a user. Rate-limited to ~1/second.

    Raises:
        SinkDeliveryFailed: If the user is unknown or does not accept DMs
    """
    bot = require_bot()
    try:
        semaphore = get_dm_semaphore()
        if semaphore:
            async with semaphore:
                user = await bot.fetch_user(int(discord_id))
                await user.send(message)
                await asyncio.sleep(1)
        else:
            user = await bot.fetch_user(int(discord_id))
            await user.send(message)
    except (discord.Forbidden, discord.NotFound) as e:
        raise SinkDeliveryFailed(f"Cannot DM user {discord_id}: {e}") from e
