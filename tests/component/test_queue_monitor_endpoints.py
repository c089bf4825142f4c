"""Component tests for the queue monitor and metrics endpoints.

These tests drive the endpoints through the full Django request/response
cycle, including URL routing, the request context middleware and the custom
exception handler, against an engine whose threads are never started.
"""

from unittest.mock import patch

from django.apps import apps
from django.test import Client, TestCase

from delivery.apps import get_engine, release_engine
from delivery.config import EngineSettings
from delivery.container import build_engine
from delivery.enums import Priority
from delivery.schemas import RetryConfig
from delivery.services.job_store import InMemoryJobStore
from tests.factories import (
    FakeClock,
    RecordingAuditSink,
    ScriptedSender,
    make_notification,
)

BASE_URL = "/api/v1/delivery"


class EngineEndpointTestCase(TestCase):
    """Routes every view to a test-owned engine."""

    max_attempts = 3

    def setUp(self):
        """Set up an engine and point the views at it."""
        self.client = Client()
        self.clock = FakeClock()
        self.sender = ScriptedSender()
        self.audit = RecordingAuditSink()
        self.engine = build_engine(
            EngineSettings(
                worker_count=1,
                send_timeout_seconds=2.0,
                retry=RetryConfig(max_attempts=self.max_attempts),
            ),
            sender=self.sender,
            audit_sink=self.audit,
            store=InMemoryJobStore(),
            clock=self.clock,
            auto_start_sweep=False,
        )
        patcher = patch("delivery.views.get_engine", return_value=self.engine)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self.engine.sender.shutdown)

    def enqueue_and_dispatch(self, *outcomes):
        self.sender.script(*outcomes)
        job_ids = [self.engine.enqueue(make_notification()) for _ in outcomes]
        while self.engine.queue.process_next() is not None:
            pass
        return job_ids


class TestHealthEndpoint(EngineEndpointTestCase):
    """Component tests for the liveness endpoint."""

    def test_liveness_reports_engine_state(self):
        """Test GET health/live returns 200 with the engine state."""
        response = self.client.get(f"{BASE_URL}/health/live")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "engine_running": False})
        self.assertIn("X-Request-ID", response)


class TestQueueMetricsEndpoint(EngineEndpointTestCase):
    """Component tests for queue-monitor/metrics."""

    def test_metrics_use_camel_case_keys(self):
        """Test the queue snapshot is returned with camelCase keys."""
        self.enqueue_and_dispatch(True, "down")

        response = self.client.get(f"{BASE_URL}/queue-monitor/metrics")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["totalJobs"], 2)
        self.assertEqual(data["completedJobs"], 1)
        self.assertEqual(data["failedJobs"], 1)
        self.assertEqual(data["retryJobs"], 1)
        self.assertEqual(data["totalAttempts"], 2)
        self.assertEqual(data["jobsByChannel"], {"EMAIL": 2})
        self.assertFalse(data["paused"])


class TestJobDetailEndpoint(EngineEndpointTestCase):
    """Component tests for queue-monitor/jobs/{job_id}."""

    def test_returns_job_snapshot(self):
        """Test a known job is returned with its notification."""
        (job_id,) = self.enqueue_and_dispatch(True)

        response = self.client.get(f"{BASE_URL}/queue-monitor/jobs/{job_id}")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["id"], job_id)
        self.assertEqual(data["state"], "completed")
        self.assertEqual(data["attemptsMade"], 1)
        self.assertIn("recipientId", data["notification"])

    def test_unknown_job_returns_404(self):
        """Test an unknown job id returns 404 in the standard error format."""
        response = self.client.get(
            f"{BASE_URL}/queue-monitor/jobs/missing",
            HTTP_X_REQUEST_ID="req-404",
        )

        self.assertEqual(response.status_code, 404)
        data = response.json()
        self.assertEqual(data["status"], 404)
        self.assertEqual(data["message"], "Job with ID missing not found")
        self.assertEqual(data["request_id"], "req-404")
        self.assertEqual(response["X-Request-ID"], "req-404")
        self.assertEqual(len(self.audit.of("job_details_error")), 1)


class TestFailedJobsEndpoint(EngineEndpointTestCase):
    """Component tests for queue-monitor/failed."""

    max_attempts = 1

    def test_lists_failed_jobs(self):
        """Test failed jobs are listed, abandoned ones included."""
        job_ids = self.enqueue_and_dispatch("rejected", True)

        response = self.client.get(f"{BASE_URL}/queue-monitor/failed")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual([job["id"] for job in data], [job_ids[0]])
        self.assertTrue(data[0]["abandoned"])
        self.assertEqual(data[0]["failureReason"], "rejected")

    def test_delete_purges_failed_jobs(self):
        """Test DELETE purges failed jobs and reports the count."""
        self.enqueue_and_dispatch("rejected", "rejected", True)

        response = self.client.delete(f"{BASE_URL}/queue-monitor/failed")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"purged": 2})
        self.assertEqual(self.client.get(f"{BASE_URL}/queue-monitor/failed").json(), [])


class TestRetryEndpoints(EngineEndpointTestCase):
    """Component tests for queue-monitor/retry."""

    def test_lists_pending_retry_jobs(self):
        """Test pending retries are listed with camelCase keys."""
        self.enqueue_and_dispatch("down")

        response = self.client.get(f"{BASE_URL}/queue-monitor/retry")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["attempts"], 1)
        self.assertEqual(data[0]["lastError"], "down")
        self.assertIn("nextAttemptAt", data[0])

    def test_retry_of_pending_job_conflicts(self):
        """Test a job owned by the retry scheduler cannot be retried manually."""
        (job_id,) = self.enqueue_and_dispatch("down")

        response = self.client.post(f"{BASE_URL}/queue-monitor/retry/{job_id}")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"], "A retry is already scheduled")

    def test_retry_of_unknown_job_returns_404(self):
        """Test retrying an unknown job returns 404."""
        response = self.client.post(f"{BASE_URL}/queue-monitor/retry/missing")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.audit.of("job_retry_error")[0]["entity_id"], "missing")


class TestManualRetryEndpoint(EngineEndpointTestCase):
    """Component tests for requeueing abandoned jobs."""

    max_attempts = 1

    def test_retry_of_abandoned_job_is_accepted(self):
        """Test an abandoned job is requeued and later delivered."""
        (job_id,) = self.enqueue_and_dispatch("rejected")

        response = self.client.post(f"{BASE_URL}/queue-monitor/retry/{job_id}")

        self.assertEqual(response.status_code, 202)
        self.assertEqual(
            response.json(), {"job_id": job_id, "message": "Job retry initiated"}
        )
        self.engine.queue.process_next()
        detail = self.client.get(f"{BASE_URL}/queue-monitor/jobs/{job_id}").json()
        self.assertEqual(detail["state"], "completed")


class TestPauseResumeEndpoints(EngineEndpointTestCase):
    """Component tests for queue-monitor/pause and resume."""

    def test_pause_and_resume(self):
        """Test pausing reports waiting jobs as paused until resumed."""
        job_id = self.engine.enqueue(make_notification(priority=Priority.LOW))

        response = self.client.post(f"{BASE_URL}/queue-monitor/pause")

        self.assertEqual(response.json(), {"paused": True})
        detail = self.client.get(f"{BASE_URL}/queue-monitor/jobs/{job_id}").json()
        self.assertEqual(detail["state"], "paused")
        self.assertTrue(self.engine.queue.is_paused())

        response = self.client.post(f"{BASE_URL}/queue-monitor/resume")

        self.assertEqual(response.json(), {"paused": False})
        self.assertFalse(self.engine.queue.is_paused())


class TestNotificationMetricsEndpoints(EngineEndpointTestCase):
    """Component tests for metrics/notifications, trends and alerts."""

    def test_notification_metrics(self):
        """Test derived metrics are returned with camelCase keys."""
        self.enqueue_and_dispatch(True, "down", True, True)

        response = self.client.get(f"{BASE_URL}/metrics/notifications")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["totalSent"], 4)
        self.assertEqual(data["totalFailed"], 1)
        self.assertEqual(data["failureRate"], 0.25)
        self.assertEqual(data["failuresByError"], {"down": 1})
        self.assertEqual(len(data["recentFailures"]), 1)

    def test_failure_trends(self):
        """Test trends bucket the current hour by day, week and month."""
        self.enqueue_and_dispatch(True, "down")

        response = self.client.get(f"{BASE_URL}/metrics/trends")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["daily"], [{"key": "2024-03-14", "rate": 0.5}])
        self.assertEqual(data["weekly"], [{"key": "2024-03-10", "rate": 0.5}])
        self.assertEqual(data["monthly"], [{"key": "2024-03", "rate": 0.5}])

    def test_alerts_with_query_overrides(self):
        """Test GET alerts applies threshold overrides from query params."""
        self.enqueue_and_dispatch(True, True, True, "down")

        default = self.client.get(f"{BASE_URL}/metrics/alerts").json()
        strict = self.client.get(
            f"{BASE_URL}/metrics/alerts",
            {"failureRateThreshold": "0.5", "hourlyFailureRateThreshold": "0.5"},
        ).json()

        self.assertEqual(
            default["alerts"],
            [
                "High failure rate: 25.0%",
                "High hourly failure rates detected in 1 periods",
            ],
        )
        self.assertEqual(strict["alerts"], [])
        self.assertEqual(strict["thresholds"]["failureRateThreshold"], 0.5)

    def test_alerts_with_json_body(self):
        """Test POST alerts accepts overrides as a JSON body."""
        response = self.client.post(
            f"{BASE_URL}/metrics/alerts",
            {"consecutive_failures_threshold": 2},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["thresholds"]["consecutiveFailuresThreshold"], 2
        )

    def test_invalid_threshold_returns_400(self):
        """Test an unknown threshold returns 400."""
        response = self.client.get(f"{BASE_URL}/metrics/alerts", {"latency": "5"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Unknown alert threshold: latency")


class TestEngineUnavailable(TestCase):
    """Component tests for a process without an engine."""

    @patch("delivery.views.get_engine", return_value=None)
    def test_returns_503(self, _mock_get_engine):
        """Test endpoints return 503 when no engine is available."""
        response = Client().get(f"{BASE_URL}/queue-monitor/metrics")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(
            response.json()["message"], "Delivery engine is not initialized"
        )


def test_liveness_without_engine(api_client):
    """Test liveness stays up when the engine was never built."""
    with patch("delivery.views.get_engine", return_value=None):
        response = api_client.get(f"{BASE_URL}/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "engine_running": False}


class TestReleasedEngine(TestCase):
    """Component tests for a process that does not run the engine."""

    def setUp(self):
        """Install a throwaway engine on the app config."""
        self.config = apps.get_app_config("delivery")
        self.addCleanup(setattr, self.config, "engine", self.config.engine)
        self.config.engine = build_engine(
            EngineSettings(worker_count=1, send_timeout_seconds=2.0),
            sender=ScriptedSender(),
            audit_sink=RecordingAuditSink(),
            store=InMemoryJobStore(),
            auto_start_sweep=False,
        )

    def test_monitor_endpoints_answer_503_after_release(self):
        """Test a released engine is never served as an empty queue."""
        engine = self.config.engine

        release_engine()

        self.assertIsNone(get_engine())
        self.assertFalse(engine.is_running)
        response = Client().get(f"{BASE_URL}/queue-monitor/metrics")
        self.assertEqual(response.status_code, 503)
        live = Client().get(f"{BASE_URL}/health/live").json()
        self.assertFalse(live["engine_running"])
