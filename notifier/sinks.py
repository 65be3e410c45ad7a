"""
Notification sinks.

ChannelSink posts, edits and deletes one message per entity in a fixed
channel. DirectMessageSink DMs a single user. Both are thin wrappers over
discord_outbound; the Protocols let the reconciler run against test doubles.
"""

from typing import Protocol

from .discord_outbound import (
    delete_channel_message,
    edit_channel_message,
    send_channel_message,
    send_dm,
)
from .discord_outbound.messages import MessageContent


class NotificationSink(Protocol):
    async def create(self, content: MessageContent) -> str:
        """Post the notification. Returns the outward handle (message id)."""
        ...

    async def update(self, handle: str, content: MessageContent) -> None:
        """Edit in place. Raises SinkNotFound if the message is gone."""
        ...

    async def retire(self, handle: str) -> None:
        """Remove the notification. Already-missing messages are fine."""
        ...


class ReminderSink(Protocol):
    async def deliver(self, user_id: str, text: str) -> None:
        """Raises SinkDeliveryFailed if the user cannot be reached."""
        ...


class ChannelSink:
    def __init__(self, channel_id: str):
        self.channel_id = channel_id

    def __repr__(self) -> str:
        return f"ChannelSink({self.channel_id})"

    async def create(self, content: MessageContent) -> str:
        return await send_channel_message(self.channel_id, content)

    async def update(self, handle: str, content: MessageContent) -> None:
        await edit_channel_message(self.channel_id, handle, content)

    async def retire(self, handle: str) -> None:
        await delete_channel_message(self.channel_id, handle)


class DirectMessageSink:
    async def deliver(self, user_id: str, text: str) -> None:
        await send_dm(user_id, text)
