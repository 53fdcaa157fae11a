"""Background periodic tasks: stale-round sweep and leaderboard recompute."""

import logging
from datetime import datetime, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class PeriodicTask:
    """A named job body. A failing run is logged and retried on the next tick."""

    def __init__(self, name: str, func: Callable[[], object], interval_seconds: float,
                 run_immediately: bool = False):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0

    def run_once(self) -> None:
        try:
            result = self.func()
            self.runs += 1
            logger.debug(f"Task {self.name} finished: {result}")
        except Exception as e:
            self.failures += 1
            logger.error(f"Task {self.name} failed: {e}")


class Scheduler:
    """Owns the periodic tasks of a process; started at init, stopped at shutdown.

    Jobs run on an APScheduler background thread pool. A job never overlaps
    with itself, and missed ticks are collapsed into one run.
    """

    def __init__(self):
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._started = False
        self.tasks: dict[str, PeriodicTask] = {}

    @property
    def is_running(self) -> bool:
        return self._started

    def add(self, name: str, func: Callable[[], object], interval_seconds: float,
            run_immediately: bool = False) -> PeriodicTask:
        if name in self.tasks:
            raise ValueError(f"Task already scheduled: {name}")
        task = PeriodicTask(name, func, interval_seconds, run_immediately)
        options = {}
        if run_immediately:
            options['next_run_time'] = datetime.now(timezone.utc)
        self._scheduler.add_job(
            task.run_once,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=name,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options
        )
        self.tasks[name] = task
        logger.info(f"Scheduled task {name} (every {interval_seconds}s)")
        return task

    def get_job(self, name: str):
        return self._scheduler.get_job(name)

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info(f"Scheduler started with {len(self.tasks)} tasks")

    def stop(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")
