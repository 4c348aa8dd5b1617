"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with correct configuration
- Immediate first sweep (next_run_time set to now)
- Start/shutdown lifecycle
- Trigger now functionality
- Sweep failures do not stop the schedule
"""

import threading
import time
from datetime import datetime
from unittest.mock import Mock

from campus_notify.persistence.exceptions import StoreError
from campus_notify.scheduler import SWEEP_JOB_ID, SchedulerService


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_scheduler_initialization(self):
        """Test that scheduler initializes with correct parameters."""
        mock_callable = Mock()
        shutdown_event = threading.Event()

        scheduler = SchedulerService(
            sweep_callable=mock_callable,
            interval_seconds=3600,
            shutdown_event=shutdown_event,
        )

        assert scheduler.interval_seconds == 3600
        assert scheduler.sweep_callable == mock_callable
        assert scheduler.shutdown_event == shutdown_event
        assert not scheduler.is_running()

    def test_scheduler_job_defaults(self):
        """Test that sweeps never overlap and delayed runs coalesce."""
        scheduler = SchedulerService(sweep_callable=Mock(), interval_seconds=600)
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(SWEEP_JOB_ID)
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.misfire_grace_time == 600
        finally:
            scheduler.shutdown(wait=False)

    def test_scheduler_start_and_shutdown(self):
        """Test scheduler start and shutdown lifecycle."""
        shutdown_event = threading.Event()
        scheduler = SchedulerService(
            sweep_callable=Mock(),
            interval_seconds=3600,
            shutdown_event=shutdown_event,
        )

        scheduler.start()
        assert scheduler.is_running()
        assert scheduler.scheduler.get_job(SWEEP_JOB_ID) is not None

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_scheduler_immediate_first_run(self):
        """Test that the first sweep runs right after start."""
        ran = threading.Event()

        scheduler = SchedulerService(sweep_callable=ran.set, interval_seconds=3600)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=True)

    def test_trigger_now_executes_immediately(self):
        """Test that trigger_now executes the sweep synchronously."""
        mock_callable = Mock(return_value=3)

        scheduler = SchedulerService(sweep_callable=mock_callable, interval_seconds=3600)
        scheduler.trigger_now()

        mock_callable.assert_called_once_with()

    def test_get_next_run_time(self):
        """Test getting the next scheduled sweep time."""
        scheduler = SchedulerService(sweep_callable=Mock(), interval_seconds=3600)

        assert scheduler.get_next_run_time() is None

        scheduler.start()
        try:
            time.sleep(0.1)
            assert isinstance(scheduler.get_next_run_time(), datetime)
        finally:
            scheduler.shutdown(wait=False)

    def test_failed_sweep_is_logged_not_raised(self):
        """Test that a StoreError from the sweep stays inside the job."""
        failing = Mock(side_effect=StoreError("Failed to delete old notifications: locked"))
        scheduler = SchedulerService(sweep_callable=failing, interval_seconds=3600)

        scheduler._run_sweep()

        failing.assert_called_once_with()

    def test_sweeps_continue_after_failure(self):
        """Test that an exception in one sweep does not stop later sweeps."""
        call_count = [0]
        second_run = threading.Event()

        def flaky_sweep():
            call_count[0] += 1
            if call_count[0] == 1:
                raise StoreError("Intentional error")
            second_run.set()

        scheduler = SchedulerService(sweep_callable=flaky_sweep, interval_seconds=1)
        scheduler.start()
        try:
            assert second_run.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=True)

        assert call_count[0] >= 2
