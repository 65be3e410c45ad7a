"""
Durable notification store.

A document-style key/value view over the notification_records table. Each
NotificationStore is scoped to one collection (one polling loop), keyed by the
entity's external id, so at most one record exists per id.

All failures surface as StoreUnavailable; callers decide whether to degrade
(treat as no prior state) or skip the operation.
"""

import enum
import logging
import operator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from .database import get_connection, get_transaction
from .enums import NotificationStatus
from .errors import StoreUnavailable
from .tables import RECORD_FIELDS, notification_records
from .types import NotificationRecord

logger = logging.getLogger(__name__)

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        raise StoreUnavailable(f"{action} failed: {e}") from e


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"Unknown record fields: {sorted(unknown)}")
    return {
        name: value.value if isinstance(value, enum.Enum) else value
        for name, value in fields.items()
    }


def _insert_for(conn):
    """Dialect insert supporting ON CONFLICT (PostgreSQL in prod, SQLite in tests)."""
    if conn.dialect.name == "postgresql":
        return pg_insert(notification_records)
    return sqlite_insert(notification_records)


class NotificationStore:
    """Notification records of a single collection."""

    def __init__(self, collection: str):
        self.collection = collection

    def __repr__(self) -> str:
        return f"NotificationStore({self.collection!r})"

    def _where_key(self, key: str):
        return (
            (notification_records.c.collection == self.collection)
            & (notification_records.c.external_id == str(key))
        )

    async def get(self, key: str) -> NotificationRecord | None:
        with _store_errors(f"get {self.collection}/{key}"):
            async with get_connection() as conn:
                result = await conn.execute(
                    select(notification_records).where(self._where_key(key))
                )
                row = result.mappings().first()
        return NotificationRecord.from_row(row) if row else None

    async def upsert(self, key: str, fields: dict[str, Any], merge: bool = True) -> None:
        """
        Insert or update the record for key.

        Args:
            key: External id of the entity
            fields: Column values to write (see tables.RECORD_FIELDS)
            merge: If True only the given fields are overwritten on conflict;
                   if False every other field is reset to empty.
        """
        values = _clean_fields(fields)

        if merge:
            conflict_set = dict(values)
        else:
            conflict_set = {name: None for name in RECORD_FIELDS}
            conflict_set.update(values)
            if conflict_set["status"] is None:
                conflict_set["status"] = NotificationStatus.pending.value

        insert_values = {
            "status": NotificationStatus.pending.value,
            **values,
            "collection": self.collection,
            "external_id": str(key),
        }

        with _store_errors(f"upsert {self.collection}/{key}"):
            async with get_transaction() as conn:
                stmt = _insert_for(conn).values(**insert_values)
                if conflict_set:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["collection", "external_id"],
                        set_=conflict_set,
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(
                        index_elements=["collection", "external_id"]
                    )
                await conn.execute(stmt)

    async def delete(self, key: str) -> bool:
        """Delete the record for key. Returns True if a record was removed."""
        with _store_errors(f"delete {self.collection}/{key}"):
            async with get_transaction() as conn:
                result = await conn.execute(
                    delete(notification_records).where(self._where_key(key))
                )
        return result.rowcount > 0

    async def query_by_field(
        self, field: str, op: str, value: Any, limit: int | None = None
    ) -> list[NotificationRecord]:
        """
        Range/equality query on one column, ordered by that column.

        Example:
            await store.query_by_field("last_seen_at", ">=", since)
        """
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        if field not in RECORD_FIELDS:
            raise ValueError(f"Unknown record field: {field}")
        if isinstance(value, enum.Enum):
            value = value.value

        column = notification_records.c[field]
        query = (
            select(notification_records)
            .where(notification_records.c.collection == self.collection)
            .where(_OPERATORS[op](column, value))
            .order_by(column)
        )
        if limit is not None:
            query = query.limit(limit)

        with _store_errors(f"query {self.collection}.{field} {op}"):
            async with get_connection() as conn:
                result = await conn.execute(query)
                rows = result.mappings().all()
        return [NotificationRecord.from_row(row) for row in rows]

    async def batch_delete(self, keys: Iterable[str]) -> int:
        """Delete many records in one transaction. Returns the number removed."""
        keys = [str(k) for k in keys]
        if not keys:
            return 0
        with _store_errors(f"batch delete {self.collection} ({len(keys)} keys)"):
            async with get_transaction() as conn:
                result = await conn.execute(
                    delete(notification_records)
                    .where(notification_records.c.collection == self.collection)
                    .where(notification_records.c.external_id.in_(keys))
                )
        return result.rowcount

    # ------------------------------------------------------------------
    # Reconciler / garbage collector helpers
    # ------------------------------------------------------------------

    async def load_active(
        self, field: str, since: datetime
    ) -> dict[str, NotificationRecord]:
        """Records whose field is at or after since, keyed by external id."""
        records = await self.query_by_field(field, ">=", since)
        return {record.external_id: record for record in records}

    async def touch(self, keys: Iterable[str], at: datetime) -> int:
        """Bulk-refresh last_seen_at for records the source still lists."""
        keys = [str(k) for k in keys]
        if not keys:
            return 0
        with _store_errors(f"touch {self.collection} ({len(keys)} keys)"):
            async with get_transaction() as conn:
                result = await conn.execute(
                    update(notification_records)
                    .where(notification_records.c.collection == self.collection)
                    .where(notification_records.c.external_id.in_(keys))
                    .values(last_seen_at=at)
                )
        return result.rowcount

    async def stale_keys(self, field: str, cutoff: datetime, limit: int) -> list[str]:
        """
        Ids of records whose field predates cutoff, oldest first.

        Pending records are never returned: they are still actionable.
        """
        column = notification_records.c[field]
        query = (
            select(notification_records.c.external_id)
            .where(notification_records.c.collection == self.collection)
            .where(column < cutoff)
            .where(notification_records.c.status != NotificationStatus.pending.value)
            .order_by(column)
            .limit(limit)
        )
        with _store_errors(f"stale query {self.collection}.{field}"):
            async with get_connection() as conn:
                result = await conn.execute(query)
                return [row[0] for row in result.all()]
