"""
Retention sweeps for notification records.

Records older than the retention window are removed in bounded batches.
Pending records are never swept.
"""

import logging
from datetime import datetime, timedelta

from .errors import StoreUnavailable
from .store import NotificationStore
from .timezone import utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


async def sweep(
    store: NotificationStore,
    retention: timedelta,
    now: datetime | None = None,
    field: str = "last_seen_at",
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """
    Delete one batch of records whose field is older than now - retention.

    Returns:
        Number of records deleted

    Raises:
        StoreUnavailable: If the store could not be queried or written
    """
    cutoff = (now or utc_now()) - retention
    keys = await store.stale_keys(field, cutoff, batch_size)
    if not keys:
        return 0
    deleted = await store.batch_delete(keys)
    logger.info(f"Cleaned up {deleted} old {store.collection} records")
    return deleted


async def run_sweep(store: NotificationStore, retention: timedelta) -> int:
    """Scheduled entry point; failures are logged and retried next period."""
    try:
        return await sweep(store, retention)
    except StoreUnavailable as e:
        logger.error(f"Cleanup of {store.collection} failed, will retry next run: {e}")
        return 0
