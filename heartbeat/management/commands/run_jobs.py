"""
Management command to run the heartbeat background jobs.

Usage:
    python manage.py run_jobs
    python manage.py run_jobs --only delivery
    python manage.py run_jobs --once

This starts the overdue detector and alert delivery loops and runs them
until interrupted (Ctrl+C or SIGTERM). Delivery workers can be scaled
out by running more processes with --only delivery.
"""
import signal
import threading

from django.core.management.base import BaseCommand

from heartbeat.services.scheduler import AlertDeliveryJob, OverdueDetectorJob

JOB_CHOICES = ["detector", "delivery"]


class Command(BaseCommand):
    help = "Run the overdue detector and alert delivery jobs"

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run a single tick of each job and exit (for testing)",
        )
        parser.add_argument(
            "--only",
            choices=JOB_CHOICES,
            default=None,
            help="Run only one of the jobs in this process",
        )

    def build_jobs(self, only: str | None) -> list:
        jobs = []
        if only in (None, "detector"):
            jobs.append(OverdueDetectorJob())
        if only in (None, "delivery"):
            jobs.append(AlertDeliveryJob())
        return jobs

    def handle(self, *args, **options):
        jobs = self.build_jobs(options["only"])

        if options["once"]:
            for job in jobs:
                report = job.run_once()
                self.stdout.write(f"{job.name}: {report}")
            self.stdout.write(self.style.SUCCESS("Job cycle complete."))
            return

        shutdown = threading.Event()

        # Set up signal handlers for graceful shutdown
        def signal_handler(signum, frame):
            shutdown.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        for job in jobs:
            job.spawn()

        self.stdout.write(
            self.style.SUCCESS(
                f"Running {', '.join(job.name for job in jobs)}. Press Ctrl+C to stop."
            )
        )

        # Keep the main thread alive
        while not shutdown.wait(1):
            pass

        self.stdout.write("\nShutting down jobs...")
        clean = all([job.stop() for job in jobs])
        if clean:
            self.stdout.write(self.style.SUCCESS("All jobs stopped."))
        else:
            self.stderr.write("Some jobs did not stop within the shutdown timeout.")
