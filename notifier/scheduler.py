"""
APScheduler-based polling loops.

Each notification loop (and each cleanup sweep) is a PollingLoop registered
as an interval job. Jobs live in memory: loops are re-registered on every
startup and all durable state is in the notification store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import sentry_sdk
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config import QUIET_LOG_INTERVAL
from .enums import LoopState
from .throttle import LogThrottle
from .timezone import utc_now

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None
_loops: dict[str, "PollingLoop"] = {}


class PollingLoop:
    """
    A named periodic task that never overlaps itself.

    A tick that fires while the previous one is still running is skipped.
    Errors are logged and reported, never raised to the scheduler.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ):
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.state = LoopState.idle
        self.runs = 0
        self.skipped = 0
        self.last_started_at: datetime | None = None
        self.last_finished_at: datetime | None = None
        self.last_result: Any = None
        self.last_error: str | None = None
        self._skip_log = LogThrottle(QUIET_LOG_INTERVAL)

    def __repr__(self) -> str:
        return f"PollingLoop({self.name!r}, every {self.interval_seconds}s)"

    async def tick(self) -> bool:
        """Run once unless already running. Returns False if skipped."""
        if self.state == LoopState.running:
            self.skipped += 1
            if self._skip_log.ready():
                logger.warning(
                    f"[{self.name}] Previous run still in progress, skipping "
                    f"({self.skipped} skipped so far)"
                )
            return False

        self.state = LoopState.running
        self.last_started_at = utc_now()
        try:
            self.last_result = await self.func()
            self.last_error = None
        except Exception as e:
            self.last_error = str(e)
            logger.exception(f"[{self.name}] Run failed")
            sentry_sdk.capture_exception(e)
        finally:
            self.state = LoopState.idle
            self.runs += 1
            self.last_finished_at = utc_now()
        return True

    def status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "skipped": self.skipped,
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_result": (
                self.last_result.as_dict()
                if hasattr(self.last_result, "as_dict")
                else self.last_result
            ),
            "last_error": self.last_error,
        }


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def init_scheduler() -> AsyncIOScheduler:
    """
    Initialize and start the APScheduler.

    Must be called from inside the running event loop (bot cog_load).
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            # PollingLoop.tick() drops overlapping runs itself
            "max_instances": 2,
            "misfire_grace_time": 30,
        },
    )
    _scheduler.start()
    logger.info("Notification scheduler started")
    return _scheduler


def shutdown_scheduler() -> None:
    """
    Stop all loops. In-flight ticks are abandoned; every action they
    completed is already persisted.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Notification scheduler stopped")
    _loops.clear()


def schedule_loop(loop: PollingLoop, run_immediately: bool = True) -> None:
    """Register (or replace) the interval job for a loop."""
    if not _scheduler:
        raise RuntimeError("Scheduler not initialized")

    kwargs = {}
    if run_immediately:
        # next_run_time=None would add the job paused
        kwargs["next_run_time"] = datetime.now(timezone.utc)

    _scheduler.add_job(
        loop.tick,
        trigger="interval",
        seconds=loop.interval_seconds,
        id=loop.name,
        replace_existing=True,
        **kwargs,
    )
    _loops[loop.name] = loop
    logger.info(f"Scheduled {loop.name} every {loop.interval_seconds:g}s")


def get_loops() -> list[PollingLoop]:
    return list(_loops.values())
