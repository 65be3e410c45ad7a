"""Data types shared by sources, the store and the reconciler."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Entity:
    """One record from an external source, as seen on a single tick."""

    external_id: str
    payload: dict[str, Any]
    observed_at: datetime
    # Source-provided creation time; orders new notifications within a tick
    created_at: datetime | None = None


@dataclass
class NotificationRecord:
    """Persisted bookkeeping for one entity of one collection."""

    external_id: str
    status: str
    notified_at: datetime | None = None
    last_updated_at: datetime | None = None
    last_seen_at: datetime | None = None
    due_at: datetime | None = None
    source_created_at: datetime | None = None
    outward_handle: str | None = None
    fingerprint: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row) -> "NotificationRecord":
        return cls(
            external_id=row["external_id"],
            status=row["status"],
            notified_at=row["notified_at"],
            last_updated_at=row["last_updated_at"],
            last_seen_at=row["last_seen_at"],
            due_at=row["due_at"],
            source_created_at=row["source_created_at"],
            outward_handle=row["outward_handle"],
            fingerprint=row["fingerprint"] or {},
            data=row["data"] or {},
        )
