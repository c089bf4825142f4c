"""Base test classes for delivery engine tests."""

import unittest

from delivery.config import EngineSettings
from delivery.container import build_engine
from delivery.schemas import RetryConfig
from delivery.services.job_store import InMemoryJobStore
from tests.factories import FakeClock, RecordingAuditSink, ScriptedSender


class BaseEngineTest(unittest.TestCase):
    """Base class for tests that drive a fully wired engine synchronously.

    Worker and sweep threads are never started: tests call
    ``queue.process_next()`` and ``retry_scheduler.sweep()`` directly, with
    time controlled by a FakeClock.
    """

    max_attempts = 3

    def setUp(self):
        """Set up an engine with a scripted sender and recording sink."""
        self.clock = FakeClock()
        self.audit = RecordingAuditSink()
        self.store = InMemoryJobStore()
        self.sender = ScriptedSender()
        self.engine = self.build_engine()
        self.queue = self.engine.queue
        self.scheduler = self.engine.retry_scheduler

    def tearDown(self):
        """Shut down the channel sender."""
        self.engine.sender.shutdown()

    def build_engine(self, **settings):
        values = {
            "worker_count": 2,
            "send_timeout_seconds": 2.0,
            "retry": RetryConfig(max_attempts=self.max_attempts),
        }
        values.update(settings)
        engine = build_engine(
            EngineSettings(**values),
            sender=self.sender,
            audit_sink=self.audit,
            store=self.store,
            clock=self.clock,
            auto_start_sweep=False,
        )
        return engine

    def script(self, *outcomes):
        """Replace the sender script for the next sends."""
        self.sender.script(*outcomes)

    def drain(self):
        """Process every dispatchable job."""
        processed = []
        while (job := self.queue.process_next()) is not None:
            processed.append(job)
        return processed

    def sweep_after(self, **delta):
        """Advance the clock and run one retry sweep."""
        return self.scheduler.sweep(self.clock.advance(**delta))
