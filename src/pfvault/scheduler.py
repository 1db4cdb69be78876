"""
Periodic backup trigger.

BACKUP_SCHEDULE follows <quantity><time-unit>, where <quantity> is a
positive integer and <time-unit> is one of min, hr, d or wk.
"""

import logging
import re
from datetime import timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pfvault.core.exceptions import ScheduleFormatError

logger = logging.getLogger(__name__)

_SCHEDULE_RE = re.compile(r"^(?P<quantity>\d+)(?P<unit>min|hr|d|wk)$")

_UNITS = {
    "min": "minutes",
    "hr": "hours",
    "d": "days",
    "wk": "weeks",
}


def parse_schedule(value: str) -> timedelta:
    match = _SCHEDULE_RE.match((value or "").strip())
    if not match:
        raise ScheduleFormatError(
            f"Invalid backup schedule {value!r}. A valid backup schedule follows "
            "the format <quantity><time-unit>, where <quantity> is a number and "
            "<time-unit> is one of: min, hr, d, wk."
        )
    quantity = int(match.group("quantity"))
    if quantity == 0:
        raise ScheduleFormatError("backup schedule quantity must be greater than zero")
    return timedelta(**{_UNITS[match.group("unit")]: quantity})


class BackupScheduler:
    """
    Runs a backup job on a fixed interval in a background thread.
    A failing run is logged and the next run still happens.
    """

    JOB_ID = "pfvault_backup"

    def __init__(self, job: Callable[[], object], interval: timedelta):
        self.job = job
        self.interval = interval
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _run_job(self) -> None:
        try:
            result = self.job()
            logger.info("Scheduled backup finished: %s", result)
        except Exception:
            logger.exception("Scheduled backup failed")

    def start(self) -> None:
        if self.is_running:
            return
        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            func=self._run_job,
            trigger=IntervalTrigger(seconds=int(self.interval.total_seconds())),
            id=self.JOB_ID,
            name="pfSense configuration backup",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Backup scheduler started (every %s)", self.interval)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Backup scheduler stopped")
        self._scheduler = None
