"""End-to-end delivery scenarios over a fully wired engine."""

import threading

from delivery.enums import JobState, Priority
from delivery.exceptions import JobNotFoundError
from delivery.services.channel_sender import SendResult
from tests.base import BaseEngineTest
from tests.factories import make_notification


class TestDeliveryWithRetries(BaseEngineTest):
    """Test cases for dispatch failures handed to the retry scheduler."""

    def test_failed_dispatch_is_delivered_by_retry(self):
        """Test a notification that fails once is completed by its retry."""
        self.script("gateway down")
        job_id = self.engine.enqueue(make_notification())

        self.drain()
        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.FAILED)
        self.assertTrue(job.retry_pending)

        self.sweep_after(seconds=1)

        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.COMPLETED)
        self.assertFalse(job.retry_pending)
        self.assertEqual(job.attempts_made, 2)
        self.assertEqual(self.audit.actions(), ["retry_succeeded"])

        stats = self.queue.get_queue_stats()
        self.assertEqual(stats.total_attempts, 2)
        self.assertEqual(stats.failed_attempts, 1)
        self.assertEqual(stats.completed_jobs, 1)

    def test_persistent_failure_is_abandoned_once(self):
        """Test a notification failing every attempt is abandoned exactly once."""
        self.script("e1", "e2", "e3")
        job_id = self.engine.enqueue(make_notification())

        self.drain()
        self.sweep_after(seconds=1)
        self.sweep_after(seconds=2)
        self.sweep_after(hours=1)

        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.FAILED)
        self.assertTrue(job.abandoned)
        self.assertEqual(job.attempts_made, 3)
        self.assertEqual(job.failure_reason, "e3")
        self.assertEqual(self.sender.call_count, 3)
        self.assertEqual(len(self.audit.of("retry_abandoned")), 1)

        metrics = self.engine.monitor.get_metrics()
        self.assertEqual(metrics.total_sent, 3)
        self.assertEqual(metrics.failure_rate, 1.0)
        self.assertEqual(self.queue.get_queue_stats().abandoned_jobs, 1)

    def test_retry_jobs_are_listed_by_monitor(self):
        """Test pending retries appear in retry jobs and recent failures."""
        self.script("down")
        notification = make_notification()
        self.engine.enqueue(notification)
        self.drain()

        retry_jobs = self.engine.monitor.get_retry_jobs()
        metrics = self.engine.monitor.get_metrics()

        self.assertEqual(
            [job.notification_id for job in retry_jobs], [notification.id]
        )
        self.assertEqual(metrics.failures_by_error, {"down": 1})
        self.assertEqual(metrics.recent_failures[0].id, notification.id)
        self.assertEqual(metrics.recent_failures[0].attempts, 1)

    def test_clearing_retry_queue_abandons_queue_jobs(self):
        """Test force-clearing retries marks the owning jobs abandoned."""
        self.script("a", "b")
        first = self.engine.enqueue(make_notification())
        second = self.engine.enqueue(make_notification())
        self.drain()

        self.assertEqual(self.scheduler.clear_queue(), 2)

        for job_id in (first, second):
            job = self.queue.get_job(job_id)
            self.assertTrue(job.abandoned)
            self.assertFalse(job.retry_pending)
        self.assertEqual(self.sweep_after(seconds=10), 0)


class TestAlertScenarios(BaseEngineTest):
    """Test cases for alerts raised from live engine metrics."""

    def test_failure_rate_at_threshold_does_not_alert(self):
        """Test one failure in ten attempts stays below the default alert."""
        self.script("down")
        for _ in range(9):
            self.engine.enqueue(make_notification())
        self.drain()
        self.sweep_after(seconds=1)

        report = self.engine.monitor.check_alerts()

        self.assertAlmostEqual(report.metrics.failure_rate, 0.1)
        self.assertEqual(report.alerts, [])
        self.assertEqual(self.audit.of("notification_alerts"), [])

    def test_high_failure_rate_alerts(self):
        """Test half the attempts failing triggers rate alerts."""
        self.script(True, "a", True, "b")
        for _ in range(4):
            self.engine.enqueue(make_notification())
        self.drain()

        report = self.engine.monitor.check_alerts()

        self.assertEqual(
            report.alerts,
            [
                "High failure rate: 50.0%",
                "High hourly failure rates detected in 1 periods",
            ],
        )
        self.assertEqual(len(self.audit.of("notification_alerts")), 1)

    def test_threshold_overrides_apply_per_call(self):
        """Test overrides passed to check_alerts silence an alert."""
        self.script("a")
        self.engine.enqueue(make_notification())
        self.engine.enqueue(make_notification())
        self.drain()

        report = self.engine.monitor.check_alerts(
            {"failureRateThreshold": 0.9, "hourlyFailureRateThreshold": 0.9}
        )

        self.assertEqual(report.alerts, [])


class TestSingleAttemptBudget(BaseEngineTest):
    """Test cases for an engine configured with one attempt per notification."""

    max_attempts = 1

    def test_failure_is_abandoned_without_retry(self):
        """Test the first failure abandons the notification immediately."""
        self.script("rejected")
        job_id = self.engine.enqueue(make_notification())

        self.drain()

        job = self.queue.get_job(job_id)
        self.assertTrue(job.abandoned)
        self.assertFalse(job.retry_pending)
        self.assertEqual(self.scheduler.get_retry_stats().queue_size, 0)
        self.assertEqual(self.audit.actions(), ["retry_abandoned"])

    def test_manual_retry_redelivers_abandoned_job(self):
        """Test an operator retry puts an abandoned job back on the queue."""
        self.script("rejected")
        job_id = self.engine.enqueue(make_notification(priority=Priority.HIGH))
        self.drain()

        self.engine.monitor.retry_failed_job(job_id)
        self.drain()

        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.COMPLETED)
        self.assertFalse(job.abandoned)
        self.assertEqual(job.attempts_made, 2)
        self.assertIn("job_retry", self.audit.actions())

    def test_clear_failed_jobs_purges_abandoned_jobs(self):
        """Test clearing failed jobs removes abandoned jobs and audits it."""
        self.script("rejected")
        job_id = self.engine.enqueue(make_notification())
        self.drain()

        purged = self.engine.monitor.clear_failed_jobs()

        self.assertEqual(purged, 1)
        with self.assertRaises(JobNotFoundError):
            self.queue.get_job(job_id)
        event = self.audit.of("failed_jobs_cleared")[0]
        self.assertEqual(
            event["details"], "Failed jobs cleared successfully (1 purged)"
        )


class SlowSender:
    """Sender that blocks until released."""

    def __init__(self):
        self.release = threading.Event()

    def send(self, channel, recipient_id, subject, content, metadata):
        self.release.wait(timeout=5)
        return SendResult.ok()


class TestSendTimeout(BaseEngineTest):
    """Test cases for sends exceeding the configured deadline."""

    def setUp(self):
        """Set up an engine whose sender never answers in time."""
        super().setUp()
        self.engine.sender.shutdown()
        self.sender = SlowSender()
        self.engine = self.build_engine(send_timeout_seconds=0.05)
        self.queue = self.engine.queue
        self.scheduler = self.engine.retry_scheduler

    def tearDown(self):
        """Release the blocked send."""
        self.sender.release.set()
        super().tearDown()

    def test_timed_out_send_goes_to_retry(self):
        """Test a timed-out send fails the job and schedules a retry."""
        job_id = self.engine.enqueue(make_notification())

        self.drain()

        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.FAILED)
        self.assertEqual(job.failure_reason, "Send timed out after 0.05s")
        self.assertTrue(self.scheduler.has_pending(job.notification.id))


class TestRecovery(BaseEngineTest):
    """Test cases for restarting an engine over the same job store."""

    def test_unfinished_jobs_are_dispatched_after_restart(self):
        """Test jobs left waiting in the store are recovered and delivered."""
        job_ids = [self.engine.enqueue(make_notification()) for _ in range(3)]
        self.queue.process_next()
        self.engine.sender.shutdown()

        self.engine = self.build_engine()
        self.queue = self.engine.queue

        self.assertEqual(self.engine.recover(), 2)
        self.drain()
        for job_id in job_ids[1:]:
            self.assertEqual(self.queue.get_job(job_id).state, JobState.COMPLETED)
        self.assertEqual(self.store.load_unfinished(), [])

    def test_pending_retry_survives_restart(self):
        """Test a failed job awaiting retry is retried after a restart."""
        self.script("down")
        job_id = self.engine.enqueue(make_notification())
        self.drain()
        notification_id = self.queue.get_job(job_id).notification.id
        self.assertTrue(self.scheduler.has_pending(notification_id))
        self.engine.sender.shutdown()

        self.engine = self.build_engine()
        self.queue = self.engine.queue
        self.scheduler = self.engine.retry_scheduler

        self.assertEqual(self.engine.recover(), 1)
        self.assertTrue(self.scheduler.has_pending(notification_id))
        self.assertIsNone(self.queue.process_next())
        self.assertEqual(self.sweep_after(minutes=5), 1)
        job = self.queue.get_job(job_id)
        self.assertEqual(job.state, JobState.COMPLETED)
        self.assertFalse(job.retry_pending)
        self.assertEqual(self.sender.call_count, 2)
        self.assertEqual(self.store.load_unfinished(), [])

    def test_unknown_job_is_audited(self):
        """Test a lookup of an unknown job is audited and re-raised."""
        with self.assertRaises(JobNotFoundError):
            self.engine.monitor.get_job_details("missing-job")

        event = self.audit.of("job_details_error")[0]
        self.assertEqual(event["entity_id"], "missing-job")
        self.assertEqual(event["error"], "Job with ID missing-job not found")
