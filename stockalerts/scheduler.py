"""Periodic scheduling of alert checks."""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from stockalerts.runner import EvaluationRunner

logger = logging.getLogger(__name__)

JOB_ID = "stockalerts-check-alerts"


class AlertScheduler:
    """Keeps exactly one recurring alert-check job registered.

    The job only calls ``EvaluationRunner.run_pass``. APScheduler is told
    to allow a single running instance and to coalesce missed runs, and the
    runner itself skips a pass while another is in flight.
    """

    def __init__(
        self,
        runner: EvaluationRunner,
        interval_minutes: float = 10,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """Initialize the scheduler.

        Args:
            runner: Runner whose passes are scheduled.
            interval_minutes: Minutes between passes.
            scheduler: Existing APScheduler instance to register the job on.
        """
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.runner = runner
        self.interval_minutes = interval_minutes
        self._scheduler = scheduler or BackgroundScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def is_scheduled(self) -> bool:
        return self._scheduler.get_job(JOB_ID) is not None

    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def schedule(self) -> bool:
        """Register the recurring job.

        Returns:
            True if the job was added, False if it was already registered.
        """
        if self.is_scheduled():
            logger.debug("Alert check already scheduled")
            return False
        self._scheduler.add_job(
            self.runner.run_pass,
            "interval",
            minutes=self.interval_minutes,
            id=JOB_ID,
            name="Check stock alerts",
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled alert check every %g minutes", self.interval_minutes)
        return True

    def run_now(self) -> bool:
        """Move the next run of the job to now.

        The pass still runs on the scheduler thread, so shutting down
        cancels it cooperatively.

        Returns:
            False if the job is not registered.
        """
        if not self.is_scheduled():
            return False
        self._scheduler.modify_job(JOB_ID, next_run_time=datetime.now())
        return True

    def unschedule(self) -> bool:
        """Remove the recurring job.

        Returns:
            True if a job was removed, False if none was registered.
        """
        if not self.is_scheduled():
            return False
        self._scheduler.remove_job(JOB_ID)
        logger.info("Alert check unscheduled")
        return True

    def start(self) -> None:
        """Start the background scheduler thread if it is not running."""
        if not self._scheduler.running:
            self.runner.reset()
            self._scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """Stop scheduling and cancel any pass in progress.

        Args:
            wait: Wait for a running pass to finish.
        """
        self.runner.cancel()
        self.unschedule()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")
