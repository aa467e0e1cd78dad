"""Interval timer that drives periodic scans."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from birdwatch.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "catalog-scan"


class SchedulerService:
    """
    Runs a callable every ``interval_seconds`` on an APScheduler worker thread.

    Only one instance of the job runs at a time and missed runs are coalesced
    into one, so a slow scan delays the next tick instead of stacking up.
    """

    def __init__(
        self,
        job_callable: Callable[[], object],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
        run_immediately: bool = False,
    ):
        """
        Args:
            job_callable: Function called on every tick
            interval_seconds: Seconds between ticks
            shutdown_event: Set when the scheduler shuts down
            run_immediately: Fire the first tick at start instead of one interval later
        """
        self.job_callable = job_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.run_immediately = run_immediately

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the job and start the worker. A second call is a no-op."""
        if self.scheduler.running:
            logger.debug("Scheduler already running", extra={"event": "scheduler.already_running"})
            return

        now = datetime.now(timezone.utc)
        next_run = now if self.run_immediately else now + timedelta(seconds=self.interval_seconds)

        self.scheduler.add_job(
            func=self.job_callable,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="Catalog seat scan",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler; with ``wait`` block until a running tick finishes."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run the job synchronously on the calling thread."""
        logger.info("Triggering immediate run", extra={"event": "scheduler.trigger_now"})
        self.job_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """Next scheduled tick, or None if the job is not registered."""
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
