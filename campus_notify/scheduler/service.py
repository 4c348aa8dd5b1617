"""Scheduler service for periodic retention sweeps."""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from campus_notify.logging import get_logger

logger = get_logger(__name__, component="scheduler")

SWEEP_JOB_ID = "notification-retention-sweep"


class SchedulerService:
    """
    Wraps APScheduler to run the retention sweep at a fixed interval.

    Uses BackgroundScheduler so the sweep runs in a worker thread while the
    main thread handles signals and coordinates shutdown.
    """

    def __init__(
        self,
        sweep_callable: Callable[[], Any],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            sweep_callable: Function to call on each run (e.g., RetentionSweeper.sweep)
            interval_seconds: Interval between runs in seconds
            shutdown_event: Optional event to set on shutdown for coordination
        """
        self.sweep_callable = sweep_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping sweeps
                "coalesce": True,  # A delayed sweep runs once, not once per missed slot
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def _run_sweep(self) -> None:
        # Errors stay inside the job so the next interval still fires.
        try:
            self.sweep_callable()
        except Exception as e:
            logger.error(
                f"Scheduled retention sweep failed: {e}",
                exc_info=True,
                extra={"event": "scheduler.job.failed", "error_type": type(e).__name__},
            )

    def start(self) -> None:
        """
        Start the scheduler and register the sweep job.

        The first sweep runs immediately after startup.
        """
        trigger = IntervalTrigger(
            seconds=self.interval_seconds,
            timezone=timezone.utc,
        )

        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._run_sweep,
            trigger=trigger,
            id=SWEEP_JOB_ID,
            name="Notification retention sweep",
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
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for a running sweep to complete before returning
        """
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
        """Run one sweep synchronously in the current thread."""
        logger.info("Triggering immediate sweep", extra={"event": "scheduler.trigger_now"})
        self.sweep_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled sweep time.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
