"""Run the delivery engine headless: workers, retry sweep and alert monitor."""

import signal
import threading

from django.core.management.base import BaseCommand

from delivery.apps import get_engine


class Command(BaseCommand):
    """Recover unfinished jobs, start the engine and block until interrupted."""

    help = "Run delivery workers, the retry sweep and the alert monitor"

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-recover",
            action="store_true",
            help="Skip reloading unfinished jobs from the job store",
        )

    def handle(self, *_args, **options):
        engine = get_engine()
        stop_requested = threading.Event()

        def _request_stop(_signum, _frame):
            stop_requested.set()

        signal.signal(signal.SIGTERM, _request_stop)
        signal.signal(signal.SIGINT, _request_stop)

        if not options["no_recover"]:
            recovered = engine.recover()
            self.stdout.write(f"Recovered {recovered} unfinished jobs")

        engine.start()
        self.stdout.write(
            self.style.SUCCESS(
                f"Delivery engine running with {engine.settings.worker_count} workers"
            )
        )
        try:
            stop_requested.wait()
        finally:
            engine.stop()
            self.stdout.write("Delivery engine stopped")
