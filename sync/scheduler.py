# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Background Scheduler for periodic pipeline runs
"""
import logging
import threading
from threading import Lock

import schedule

from utils.timezone import format_api_time, get_utc_time

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs the orchestrator every interval_minutes on a daemon thread"""

    def __init__(self, orchestrator, interval_minutes: int = 60, poll_seconds: float = 30):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.poll_seconds = poll_seconds
        self.scheduler = schedule.Scheduler()
        self.scheduler_lock = Lock()
        self.scheduler_running = False
        self.scheduler_thread = None

    @property
    def stop_event(self) -> threading.Event:
        return self.orchestrator.stop_event

    def start(self, run_immediately: bool = True):
        """Start the scheduler"""
        with self.scheduler_lock:
            if self.scheduler_thread is not None and self.scheduler_thread.is_alive():
                logger.info("Scheduler already running")
                return

            logger.info(f"Starting scheduler thread at {format_api_time(get_utc_time())}...")
            self.stop_event.clear()
            self.scheduler.clear()
            self.scheduler.every(self.interval_minutes).minutes.do(self.run_once)
            self.scheduler_running = True
            self.scheduler_thread = threading.Thread(
                target=self._run_scheduler, args=(run_immediately,), daemon=True)
            self.scheduler_thread.start()

    def stop(self, timeout: float = None):
        """Stop the scheduler; a run in progress stops at its next checkpoint"""
        with self.scheduler_lock:
            self.scheduler_running = False
            thread = self.scheduler_thread

        self.stop_event.set()
        logger.info(f"Stopping scheduler at {format_api_time(get_utc_time())}...")

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def is_running(self):
        """Check if scheduler is running"""
        with self.scheduler_lock:
            return bool(self.scheduler_running and self.scheduler_thread and self.scheduler_thread.is_alive())

    def _run_scheduler(self, run_immediately: bool):
        logger.info(f"Scheduler started - sync every {self.interval_minutes} minutes")

        if run_immediately:
            self.run_once()

        while not self.stop_event.is_set():
            with self.scheduler_lock:
                if not self.scheduler_running:
                    break

            self.scheduler.run_pending()
            self.stop_event.wait(self.poll_seconds)

        self.scheduler.clear()
        logger.info(f"Scheduler stopped at {format_api_time(get_utc_time())}")

    def run_once(self):
        """Function called by scheduler"""
        if self.stop_event.is_set():
            logger.info("Scheduled sync skipped - scheduler stopping")
            return None

        logger.info(f"Running scheduled sync at {format_api_time(get_utc_time())}")
        report = self.orchestrator.run()

        if report.success:
            logger.info("✅ Scheduled sync completed successfully")
        else:
            logger.warning(f"⚠️ Scheduled sync completed with issues: {report.error_message or 'cancelled'}")

        stats = self.orchestrator.history.get_statistics(hours=24)
        logger.info(f"📊 Last 24h: {stats['successful_runs']}/{stats['total_runs']} runs succeeded")
        return report
