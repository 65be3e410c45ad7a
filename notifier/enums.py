"""Enum definitions for notification bookkeeping."""

import enum


class NotificationStatus(str, enum.Enum):
    """Lifecycle of a channel notification record."""

    pending = "pending"
    notified = "notified"
    updated = "updated"
    failed = "failed"


class ReminderStatus(str, enum.Enum):
    """Lifecycle of a direct-message reminder record."""

    pending = "pending"
    sent = "sent"
    failed = "failed"


class ActionKind(str, enum.Enum):
    create = "create"
    update = "update"
    retire = "retire"
    deliver = "deliver"
    expire = "expire"


class LoopState(str, enum.Enum):
    idle = "idle"
    running = "running"


# Statuses for which a channel message exists and can be edited or retired
LIVE_STATUSES = frozenset(
    {NotificationStatus.notified.value, NotificationStatus.updated.value}
)
