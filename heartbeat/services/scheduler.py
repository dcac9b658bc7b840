"""
APScheduler-backed periodic jobs.

Each job is an explicit handle owning its own BackgroundScheduler:

1. OverdueDetectorJob flips lapsed checks DOWN and enqueues alerts
2. AlertDeliveryJob drains the alert queue and, daily, purges old
   finished alerts

Jobs share no in-process state; they coordinate only through the
database. spawn() starts the loop, stop() requests a cooperative
shutdown and waits (bounded) for the running tick to finish.
"""
import logging
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.db import close_old_connections

from heartbeat.services.delivery import DeliveryReport, default_worker_id, deliver_alert_batch
from heartbeat.services.detector import DetectorReport, detect_overdue_checks
from heartbeat.services.notifier import Notifier
from heartbeat.services.retention import delete_old_alerts

logger = logging.getLogger(__name__)


class PeriodicJob:
    """Base class for a tick function run on a fixed interval."""

    job_id = "periodic_job"
    name = "Periodic Job"

    def __init__(self, interval: float, shutdown_timeout: float | None = None):
        self.interval = interval
        if shutdown_timeout is None:
            shutdown_timeout = getattr(settings, "JOB_SHUTDOWN_TIMEOUT", 30)
        self.shutdown_timeout = shutdown_timeout

        self._scheduler: BackgroundScheduler | None = None
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._idle = threading.Event()
        self._idle.set()

    def tick(self):
        raise NotImplementedError

    def configure(self, scheduler: BackgroundScheduler) -> None:
        """Hook for subclasses to add extra jobs to their scheduler."""

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def should_stop(self) -> bool:
        return self._stopping.is_set()

    def run_once(self):
        """
        Run a single tick now.

        Errors are logged and never propagate, so a failing tick cannot
        take the owning process down. Returns the tick's report, or None
        if the tick failed or the job is stopping.
        """
        with self._lock:
            if self._stopping.is_set():
                return None
            self._idle.clear()

        try:
            return self.tick()
        except Exception as e:
            logger.exception(f"Error in {self.name} tick: {e}")
            return None
        finally:
            self._idle.set()

    def _scheduled_tick(self) -> None:
        try:
            self.run_once()
        finally:
            # Scheduler threads hold their own database connections
            close_old_connections()

    def spawn(self) -> BackgroundScheduler:
        """Start the loop. Calling spawn() on a running job is a no-op."""
        if self._scheduler is not None:
            logger.warning(f"{self.name} already running")
            return self._scheduler

        self._stopping.clear()
        scheduler = BackgroundScheduler(timezone="UTC")
        scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self.interval),
            id=self.job_id,
            name=self.name,
            replace_existing=True,
            max_instances=1,  # Prevent overlapping ticks
            coalesce=True,
        )
        self.configure(scheduler)
        scheduler.start()
        self._scheduler = scheduler

        logger.info(f"{self.name} started: every {self.interval}s")
        return scheduler

    def stop(self, timeout: float | None = None) -> bool:
        """
        Stop scheduling ticks and wait for the running one to finish.

        Returns True if the job went idle within the timeout.
        """
        if self._scheduler is None:
            return True

        if timeout is None:
            timeout = self.shutdown_timeout

        with self._lock:
            self._stopping.set()

        self._scheduler.shutdown(wait=False)
        self._scheduler = None

        finished = self._idle.wait(timeout)
        if finished:
            logger.info(f"{self.name} stopped")
        else:
            logger.error(f"{self.name} tick still running after {timeout}s, giving up wait")
        return finished


class OverdueDetectorJob(PeriodicJob):
    job_id = "overdue_detector"
    name = "Overdue Detector"

    def __init__(self, interval: float | None = None, shutdown_timeout: float | None = None):
        if interval is None:
            interval = getattr(settings, "OVERDUE_DETECTOR_INTERVAL", 5)
        super().__init__(interval, shutdown_timeout)

    def tick(self) -> DetectorReport:
        return detect_overdue_checks(should_stop=self.should_stop)


class AlertDeliveryJob(PeriodicJob):
    job_id = "alert_delivery"
    name = "Alert Delivery"

    def __init__(
        self,
        notifier: Notifier | None = None,
        worker_id: str | None = None,
        batch_size: int | None = None,
        interval: float | None = None,
        shutdown_timeout: float | None = None,
    ):
        if interval is None:
            interval = getattr(settings, "ALERT_DELIVERY_INTERVAL", 5)
        super().__init__(interval, shutdown_timeout)
        self.notifier = notifier or Notifier.from_settings()
        self.worker_id = worker_id or default_worker_id()
        self.batch_size = batch_size

    def tick(self) -> DeliveryReport:
        return deliver_alert_batch(
            self.notifier,
            worker_id=self.worker_id,
            batch_size=self.batch_size,
            should_stop=self.should_stop,
        )

    def configure(self, scheduler: BackgroundScheduler) -> None:
        scheduler.add_job(
            run_cleanup_job,
            trigger=CronTrigger(hour=3, minute=0, timezone="UTC"),
            id="daily_alert_cleanup",
            name="Daily Alert Cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,  # If missed, only run once when back online
        )
        logger.info("Alert cleanup job configured: daily at 3:00 AM UTC")


def run_cleanup_job() -> None:
    """Purge finished alerts past ALERT_RETENTION_DAYS."""
    logger.info("Starting alert cleanup job...")
    try:
        delete_old_alerts()
    except Exception as e:
        logger.exception(f"Error in cleanup job: {e}")
    finally:
        close_old_connections()
