"""
Scheduler tests - periodic runs on a background thread
"""

import logging
import pytest
import sys
import os
import threading
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sync.history import SyncHistory
from sync.scheduler import SyncScheduler
from utils.timezone import get_utc_time


def make_orchestrator(success=True):
    orchestrator = MagicMock()
    orchestrator.stop_event = threading.Event()
    orchestrator.run.return_value = MagicMock(success=success, error_message=None if success else 'boom')
    return orchestrator


class TestSyncScheduler:

    @pytest.mark.unit
    def test_run_once_delegates_to_orchestrator(self):
        orchestrator = make_orchestrator()

        report = SyncScheduler(orchestrator).run_once()

        orchestrator.run.assert_called_once_with()
        assert report.success

    @pytest.mark.unit
    def test_run_once_skipped_while_stopping(self):
        orchestrator = make_orchestrator()
        orchestrator.stop_event.set()

        assert SyncScheduler(orchestrator).run_once() is None
        orchestrator.run.assert_not_called()

    @pytest.mark.unit
    def test_start_runs_immediately_and_stop_cancels(self):
        orchestrator = make_orchestrator()
        ran = threading.Event()
        orchestrator.run.side_effect = lambda: ran.set() or MagicMock(success=True)
        scheduler = SyncScheduler(orchestrator, interval_minutes=60, poll_seconds=0.01)

        scheduler.start()
        assert ran.wait(5)
        assert scheduler.is_running()

        scheduler.stop(timeout=5)

        assert not scheduler.is_running()
        assert orchestrator.stop_event.is_set()
        assert orchestrator.run.call_count == 1

    @pytest.mark.unit
    def test_start_without_initial_run(self):
        orchestrator = make_orchestrator()
        scheduler = SyncScheduler(orchestrator, interval_minutes=60, poll_seconds=0.01)

        scheduler.start(run_immediately=False)
        scheduler.stop(timeout=5)

        orchestrator.run.assert_not_called()

    @pytest.mark.unit
    def test_failed_run_does_not_stop_scheduler(self):
        orchestrator = make_orchestrator(success=False)

        report = SyncScheduler(orchestrator).run_once()

        assert not report.success

    @pytest.mark.unit
    def test_run_once_logs_recent_history(self, caplog):
        orchestrator = make_orchestrator()
        history = SyncHistory()
        report = orchestrator.run.return_value
        report.finished_at = get_utc_time()
        report.duration_seconds = 2.0
        report.failed_stage = None
        report.totals.return_value = {'lead_upload.created': 1}
        orchestrator.history = history
        orchestrator.run.side_effect = lambda: history.add_entry(report) or report

        with caplog.at_level(logging.INFO, logger='sync.scheduler'):
            SyncScheduler(orchestrator).run_once()

        assert 'Last 24h: 1/1 runs succeeded' in caplog.text
        assert history.get_statistics(hours=24)['totals'] == {'lead_upload.created': 1}
