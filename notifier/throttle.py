"""Rate limiting for repetitive log lines."""

from datetime import datetime, timedelta

from .timezone import utc_now


class LogThrottle:
    """
    Lets a log line through at most once per interval.

    Usage:
        if self._quiet_log.ready():
            logger.info("Nothing new")
    """

    def __init__(self, interval: timedelta):
        self.interval = interval
        self._last: datetime | None = None

    def ready(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        return True
