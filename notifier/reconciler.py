"""
Reconciliation engine.

One generic diff-and-act loop shared by every notification kind:

1. Load the records touched within a recent window (the "active set").
2. Diff the fresh source snapshot against them (plan_actions):
   new id -> create, changed fingerprint -> update, due reminder -> deliver
   (or expire when past the lookback), vanished entity -> retire.
3. Execute actions one entity at a time; one entity failing never stops the
   rest of the tick.
4. Persist the new bookkeeping after every successful side effect.

Each kind (lobbies, completed games, reminders) is a NotificationInstance:
the fetch, fingerprint and render functions, the sink, and which of
update/retire it supports.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import sentry_sdk

from .config import QUIET_LOG_INTERVAL
from .enums import LIVE_STATUSES, ActionKind, NotificationStatus, ReminderStatus
from .errors import (
    SinkDeliveryFailed,
    SinkNotFound,
    SourceUnavailable,
    StoreUnavailable,
)
from .sinks import NotificationSink, ReminderSink
from .sources import Source
from .store import NotificationStore
from .throttle import LogThrottle
from .timezone import utc_now
from .types import Entity, NotificationRecord

logger = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _no_fingerprint(entity: Entity) -> dict:
    return {}


@dataclass
class NotificationInstance:
    """Strategy parameters for one reconciliation loop."""

    name: str
    store: NotificationStore
    source: Source
    # Entity -> message content (text or discord.Embed)
    render: Callable[[Entity], Any]
    fingerprint: Callable[[Entity], dict] = _no_fingerprint
    # Exactly one of sink (channel messages) / reminder_sink (DMs)
    sink: NotificationSink | None = None
    reminder_sink: ReminderSink | None = None
    # Entity -> Discord user ID, for reminder_sink
    recipient: Callable[[Entity], str] | None = None
    # Entity -> extra bookkeeping persisted with the record
    record_data: Callable[[Entity], dict] | None = None
    supports_update: bool = False
    supports_retire: bool = False
    active_field: str = "last_seen_at"
    active_window: timedelta = timedelta(hours=1)
    retire_grace: timedelta = timedelta(minutes=2)
    # Reminders due longer ago than this are dropped, not delivered
    max_lookback: timedelta | None = None

    def __post_init__(self):
        if (self.sink is None) == (self.reminder_sink is None):
            raise ValueError(f"{self.name}: exactly one of sink/reminder_sink is required")
        if self.reminder_sink is not None and self.recipient is None:
            raise ValueError(f"{self.name}: reminder_sink requires a recipient function")

    @property
    def delivers_direct(self) -> bool:
        return self.reminder_sink is not None


@dataclass
class Action:
    kind: ActionKind
    external_id: str
    entity: Entity | None = None
    record: NotificationRecord | None = None


@dataclass
class ReconcilePlan:
    actions: list[Action] = field(default_factory=list)
    # Ids still listed by the source with nothing to do; their last_seen_at is refreshed
    seen: list[str] = field(default_factory=list)

    def of_kind(self, kind: ActionKind) -> list[Action]:
        return [action for action in self.actions if action.kind == kind]


@dataclass
class ReconcileResult:
    fetched: int = 0
    created: int = 0
    updated: int = 0
    retired: int = 0
    delivered: int = 0
    expired: int = 0
    vanished: int = 0  # message deleted externally, recreated next tick
    failed: int = 0  # sink refused, marked terminal
    errors: int = 0  # transient, retried next tick
    source_unavailable: bool = False

    @property
    def changes(self) -> int:
        return (
            self.created
            + self.updated
            + self.retired
            + self.delivered
            + self.expired
            + self.vanished
            + self.failed
        )

    def as_dict(self) -> dict:
        return asdict(self)


def _creation_order(entity: Entity) -> tuple:
    # Entities without a source creation time go last, keeping fetch order
    return (entity.created_at is None, entity.created_at or _EARLIEST)


def plan_actions(
    instance: NotificationInstance,
    snapshot: list[Entity],
    records: dict[str, NotificationRecord],
    now: datetime,
) -> ReconcilePlan:
    """
    Diff a snapshot against the known records. Pure; no I/O.

    Ordering: creates first, in ascending source creation time; then updates
    and deliveries (deliveries by due time); retirements last.
    """
    plan = ReconcilePlan()
    creates: list[Entity] = []
    updates: list[Action] = []
    deliveries: list[Action] = []
    snapshot_ids: set[str] = set()

    for entity in snapshot:
        external_id = entity.external_id
        if external_id in snapshot_ids:
            continue
        snapshot_ids.add(external_id)
        record = records.get(external_id)

        if instance.delivers_direct:
            if record is None or record.status != ReminderStatus.pending.value:
                continue
            if record.due_at is None or record.due_at > now:
                continue
            expired = (
                instance.max_lookback is not None
                and now - record.due_at > instance.max_lookback
            )
            kind = ActionKind.expire if expired else ActionKind.deliver
            deliveries.append(Action(kind, external_id, entity, record))
            continue

        if record is None:
            creates.append(entity)
        elif (
            record.status in LIVE_STATUSES
            and instance.supports_update
            and instance.fingerprint(entity) != record.fingerprint
        ):
            updates.append(Action(ActionKind.update, external_id, entity, record))
        else:
            # Unchanged, or terminal (failed): nothing to send
            plan.seen.append(external_id)

    plan.actions.extend(
        Action(ActionKind.create, entity.external_id, entity)
        for entity in sorted(creates, key=_creation_order)
    )
    plan.actions.extend(updates)
    plan.actions.extend(sorted(deliveries, key=lambda action: action.record.due_at))

    if instance.supports_retire:
        for external_id, record in records.items():
            if external_id in snapshot_ids:
                continue
            last_seen = record.last_seen_at or record.notified_at
            if last_seen is None or now - last_seen >= instance.retire_grace:
                plan.actions.append(
                    Action(ActionKind.retire, external_id, record=record)
                )

    return plan


class Reconciler:
    """Runs the diff-and-act loop for one NotificationInstance."""

    def __init__(self, instance: NotificationInstance):
        self.instance = instance
        self.store = instance.store
        self._quiet_log = LogThrottle(QUIET_LOG_INTERVAL)

    @property
    def name(self) -> str:
        return self.instance.name

    async def run_tick(self) -> ReconcileResult:
        """
        Fetch a snapshot and reconcile it.

        Never raises: a failed fetch or an unexpected error yields an empty
        tick and the next scheduled run tries again.
        """
        try:
            snapshot = await self.instance.source.fetch_snapshot()
        except SourceUnavailable as e:
            logger.warning(f"[{self.name}] Source unavailable, skipping tick: {e}")
            return ReconcileResult(source_unavailable=True)
        except Exception as e:
            logger.error(f"[{self.name}] Error fetching snapshot: {e}")
            sentry_sdk.capture_exception(e)
            return ReconcileResult(source_unavailable=True)

        try:
            result = await self.reconcile(snapshot)
        except Exception as e:
            logger.error(f"[{self.name}] Error reconciling snapshot: {e}")
            sentry_sdk.capture_exception(e)
            return ReconcileResult(fetched=len(snapshot), errors=1)

        if result.changes or result.errors:
            logger.info(f"[{self.name}] Tick complete: {result.as_dict()}")
        elif self._quiet_log.ready():
            logger.info(
                f"[{self.name}] Check completed - {result.fetched} listed, nothing new"
            )
        return result

    async def load_records(
        self, snapshot: list[Entity], now: datetime
    ) -> dict[str, NotificationRecord]:
        """
        Active set plus individual lookups for snapshot ids outside it.

        If the store is unreachable we carry on with no prior state; that can
        duplicate notifications but keeps the loop alive.
        """
        since = now - self.instance.active_window
        try:
            records = await self.store.load_active(self.instance.active_field, since)
        except StoreUnavailable as e:
            logger.warning(
                f"[{self.name}] Could not load notification state, "
                f"proceeding without it (duplicates possible): {e}"
            )
            return {}

        for entity in snapshot:
            if entity.external_id in records:
                continue
            try:
                record = await self.store.get(entity.external_id)
            except StoreUnavailable as e:
                logger.warning(
                    f"[{self.name}] Could not look up {entity.external_id}: {e}"
                )
                continue
            if record is not None:
                records[entity.external_id] = record
        return records

    async def reconcile(
        self, snapshot: list[Entity], now: datetime | None = None
    ) -> ReconcileResult:
        now = now or utc_now()
        result = ReconcileResult(fetched=len(snapshot))

        records = await self.load_records(snapshot, now)
        plan = plan_actions(self.instance, snapshot, records, now)

        for action in plan.actions:
            try:
                await self._execute(action, now, result)
            except Exception as e:
                result.errors += 1
                logger.error(
                    f"[{self.name}] {action.kind.value} failed for "
                    f"{action.external_id}: {e}"
                )
                sentry_sdk.capture_exception(e)

        if plan.seen:
            try:
                await self.store.touch(plan.seen, now)
            except StoreUnavailable as e:
                logger.warning(f"[{self.name}] Could not refresh last_seen_at: {e}")

        return result

    async def _execute(self, action: Action, now: datetime, result: ReconcileResult) -> None:
        if action.kind == ActionKind.create:
            await self._create(action.entity, now, result)
        elif action.kind == ActionKind.update:
            await self._update(action.entity, action.record, now, result)
        elif action.kind == ActionKind.retire:
            await self._retire(action.record, result)
        elif action.kind == ActionKind.deliver:
            await self._deliver(action.entity, now, result)
        elif action.kind == ActionKind.expire:
            await self.store.delete(action.external_id)
            result.expired += 1
            logger.info(
                f"[{self.name}] Dropped expired reminder {action.external_id} "
                f"(was due {action.record.due_at.isoformat()})"
            )

    def _bookkeeping(self, entity: Entity) -> dict:
        return {
            "source_created_at": entity.created_at,
            "fingerprint": self.instance.fingerprint(entity),
            "data": self.instance.record_data(entity) if self.instance.record_data else {},
        }

    async def _create(self, entity: Entity, now: datetime, result: ReconcileResult) -> None:
        content = self.instance.render(entity)
        try:
            handle = await self.instance.sink.create(content)
        except SinkDeliveryFailed as e:
            logger.warning(
                f"[{self.name}] Sink refused {entity.external_id}, "
                f"marking failed (not retried): {e}"
            )
            await self.store.upsert(
                entity.external_id,
                {
                    "status": NotificationStatus.failed,
                    "last_seen_at": now,
                    **self._bookkeeping(entity),
                },
                merge=False,
            )
            result.failed += 1
            return

        result.created += 1
        logger.info(f"[{self.name}] Notified {entity.external_id} (message {handle})")
        try:
            await self.store.upsert(
                entity.external_id,
                {
                    "status": NotificationStatus.notified,
                    "notified_at": now,
                    "last_seen_at": now,
                    "outward_handle": handle,
                    **self._bookkeeping(entity),
                },
                merge=False,
            )
        except StoreUnavailable as e:
            logger.error(
                f"[{self.name}] Sent {entity.external_id} but could not record it; "
                f"it may be sent again: {e}"
            )
            sentry_sdk.capture_exception(e)

    async def _update(
        self,
        entity: Entity,
        record: NotificationRecord,
        now: datetime,
        result: ReconcileResult,
    ) -> None:
        try:
            if not record.outward_handle:
                raise SinkNotFound(f"No message recorded for {entity.external_id}")
            await self.instance.sink.update(
                record.outward_handle, self.instance.render(entity)
            )
        except SinkNotFound:
            # Forget the record so the next tick posts a fresh message
            await self.store.delete(entity.external_id)
            result.vanished += 1
            logger.info(
                f"[{self.name}] Message for {entity.external_id} is gone, "
                f"will recreate"
            )
            return

        await self.store.upsert(
            entity.external_id,
            {
                "status": NotificationStatus.updated,
                "last_updated_at": now,
                "last_seen_at": now,
                "fingerprint": self.instance.fingerprint(entity),
            },
        )
        result.updated += 1
        logger.info(f"[{self.name}] Updated {entity.external_id}")

    async def _retire(self, record: NotificationRecord, result: ReconcileResult) -> None:
        if record.outward_handle and record.status in LIVE_STATUSES:
            await self.instance.sink.retire(record.outward_handle)
        await self.store.delete(record.external_id)
        result.retired += 1
        logger.info(f"[{self.name}] Retired {record.external_id}")

    async def _deliver(self, entity: Entity, now: datetime, result: ReconcileResult) -> None:
        user_id = self.instance.recipient(entity)
        try:
            await self.instance.reminder_sink.deliver(
                user_id, self.instance.render(entity)
            )
        except SinkDeliveryFailed as e:
            logger.warning(
                f"[{self.name}] Could not deliver {entity.external_id} to "
                f"user {user_id}, giving up: {e}"
            )
            await self._finish_reminder(entity.external_id, ReminderStatus.failed, now)
            result.failed += 1
            return

        await self._finish_reminder(entity.external_id, ReminderStatus.sent, now)
        result.delivered += 1
        logger.info(f"[{self.name}] Delivered {entity.external_id} to user {user_id}")

    async def _finish_reminder(
        self, external_id: str, status: ReminderStatus, now: datetime
    ) -> None:
        """
        Delivered reminders need no retention. If the delete fails a terminal
        status is kept instead, stamped so the reminder sweep removes it later.
        """
        try:
            await self.store.delete(external_id)
        except StoreUnavailable as e:
            logger.warning(
                f"[{self.name}] Could not delete {external_id}, "
                f"marking {status.value} instead: {e}"
            )
            await self.store.upsert(
                external_id, {"status": status, "notified_at": now, "last_seen_at": now}
            )
