"""SQLAlchemy Core table definitions for the notification store."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    MetaData,
    Table,
    Text,
    TypeDecorator,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


JSONColumn = JSON().with_variant(JSONB(), "postgresql")


# =====================================================
# NOTIFICATION RECORDS
# =====================================================
# One row per (collection, external_id). Each polling loop owns one collection
# and is the only writer of its rows.
notification_records = Table(
    "notification_records",
    metadata,
    Column("collection", Text, primary_key=True),  # e.g. "lobby_notifications"
    Column("external_id", Text, primary_key=True),
    Column("status", Text, nullable=False),  # NotificationStatus / ReminderStatus
    Column("notified_at", UTCDateTime),
    Column("last_updated_at", UTCDateTime),  # last in-place edit (lobbies)
    Column("last_seen_at", UTCDateTime),  # last tick the source still listed it
    Column("due_at", UTCDateTime),  # reminders only
    Column("source_created_at", UTCDateTime),
    Column("outward_handle", Text),  # Discord message ID
    Column("fingerprint", JSONColumn),
    Column("data", JSONColumn),
    Column("created_at", UTCDateTime, server_default=func.now()),
    Index("idx_notification_records_last_seen", "collection", "last_seen_at"),
    Index("idx_notification_records_due", "collection", "due_at"),
)

# Columns callers may write through NotificationStore.upsert()
RECORD_FIELDS = (
    "status",
    "notified_at",
    "last_updated_at",
    "last_seen_at",
    "due_at",
    "source_created_at",
    "outward_handle",
    "fingerprint",
    "data",
)


def include_in_migrations(obj, name, type_, reflected, compare_to) -> bool:
    """
    Alembic include_object hook. Reflected tables missing from metadata belong
    to other services and are left out of autogenerate.
    """
    if type_ == "table" and reflected and compare_to is None:
        return name in metadata.tables
    return True
