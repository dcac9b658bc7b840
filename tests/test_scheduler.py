"""
Tests for the periodic job handles.
"""
import threading
from unittest.mock import MagicMock, patch

import pytest

from heartbeat.services.delivery import DeliveryReport
from heartbeat.services.detector import DetectorReport
from heartbeat.services.scheduler import (
    AlertDeliveryJob,
    OverdueDetectorJob,
    PeriodicJob,
    run_cleanup_job,
)

pytestmark = pytest.mark.django_db


class SlowJob(PeriodicJob):
    """A job whose tick blocks until released."""

    job_id = "slow_job"
    name = "Slow Job"

    def __init__(self):
        super().__init__(interval=1, shutdown_timeout=1)
        self.started = threading.Event()
        self.release = threading.Event()

    def tick(self):
        self.started.set()
        self.release.wait(5)
        return "done"


class TestRunOnce:
    """Tests for running a single tick."""

    @patch("heartbeat.services.scheduler.detect_overdue_checks")
    def test_detector_tick(self, mock_detect):
        mock_detect.return_value = DetectorReport(scanned=3, marked_down=1)
        job = OverdueDetectorJob(interval=1)

        report = job.run_once()

        assert report.marked_down == 1
        mock_detect.assert_called_once_with(should_stop=job.should_stop)

    @patch("heartbeat.services.scheduler.deliver_alert_batch")
    def test_delivery_tick(self, mock_deliver, notifier):
        mock_deliver.return_value = DeliveryReport(claimed=2)
        job = AlertDeliveryJob(notifier=notifier, worker_id="worker-a", batch_size=5)

        report = job.run_once()

        assert report.claimed == 2
        mock_deliver.assert_called_once_with(
            notifier,
            worker_id="worker-a",
            batch_size=5,
            should_stop=job.should_stop,
        )

    @patch("heartbeat.services.scheduler.detect_overdue_checks")
    def test_tick_errors_are_swallowed(self, mock_detect):
        mock_detect.side_effect = RuntimeError("database went away")
        job = OverdueDetectorJob(interval=1)

        assert job.run_once() is None

        # The job keeps working after a failed tick
        mock_detect.side_effect = None
        mock_detect.return_value = DetectorReport()
        assert job.run_once() == DetectorReport()

    def test_delivery_job_defaults(self, settings):
        settings.ALERT_DELIVERY_INTERVAL = 7

        job = AlertDeliveryJob()

        assert job.interval == 7
        assert job.worker_id
        assert job.notifier is not None


class TestSpawnAndStop:
    """Tests for the job lifecycle."""

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_spawn_detector(self, mock_scheduler_class):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler
        job = OverdueDetectorJob(interval=5)

        job.spawn()

        assert job.running is True
        mock_scheduler.add_job.assert_called_once()
        assert mock_scheduler.add_job.call_args.kwargs["id"] == "overdue_detector"
        assert mock_scheduler.add_job.call_args.kwargs["max_instances"] == 1
        mock_scheduler.start.assert_called_once()

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_spawn_delivery_adds_cleanup(self, mock_scheduler_class, notifier):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler
        job = AlertDeliveryJob(notifier=notifier)

        job.spawn()

        job_ids = [call.kwargs["id"] for call in mock_scheduler.add_job.call_args_list]
        assert job_ids == ["alert_delivery", "daily_alert_cleanup"]

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_spawn_twice_is_noop(self, mock_scheduler_class):
        job = OverdueDetectorJob(interval=5)

        first = job.spawn()
        second = job.spawn()

        assert first is second
        mock_scheduler_class.assert_called_once()

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_stop_shuts_scheduler_down(self, mock_scheduler_class):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler
        job = OverdueDetectorJob(interval=5)
        job.spawn()

        assert job.stop() is True

        mock_scheduler.shutdown.assert_called_once_with(wait=False)
        assert job.running is False

    def test_stop_without_spawn(self):
        assert OverdueDetectorJob(interval=5).stop() is True

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_run_once_after_stop_is_skipped(self, mock_scheduler_class):
        job = SlowJob()
        job.spawn()
        job.stop()

        assert job.run_once() is None
        assert job.started.is_set() is False

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_stop_waits_for_running_tick(self, mock_scheduler_class):
        job = SlowJob()
        job.spawn()
        worker = threading.Thread(target=job.run_once)
        worker.start()
        assert job.started.wait(2)

        assert job.stop(timeout=0.05) is False

        job.release.set()
        worker.join(2)
        assert job._idle.is_set()

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_stop_returns_once_tick_finishes(self, mock_scheduler_class):
        job = SlowJob()
        job.spawn()
        worker = threading.Thread(target=job.run_once)
        worker.start()
        assert job.started.wait(2)
        threading.Timer(0.05, job.release.set).start()

        assert job.stop(timeout=2) is True
        worker.join(2)

    @patch("heartbeat.services.scheduler.BackgroundScheduler")
    def test_should_stop_reflects_shutdown(self, mock_scheduler_class):
        job = OverdueDetectorJob(interval=5)
        job.spawn()
        assert job.should_stop() is False

        job.stop()

        assert job.should_stop() is True


class TestCleanupJob:
    @patch("heartbeat.services.scheduler.close_old_connections")
    @patch("heartbeat.services.scheduler.delete_old_alerts")
    def test_cleanup_job_runs_retention(self, mock_delete, mock_close):
        run_cleanup_job()

        mock_delete.assert_called_once_with()

    @patch("heartbeat.services.scheduler.close_old_connections")
    @patch("heartbeat.services.scheduler.delete_old_alerts")
    def test_cleanup_job_errors_are_logged(self, mock_delete, mock_close):
        mock_delete.side_effect = RuntimeError("boom")

        run_cleanup_job()

        mock_close.assert_called_once()
