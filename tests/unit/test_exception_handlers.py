"""Unit tests for exception handlers."""

import unittest
from unittest.mock import Mock, patch

from django.http import Http404

from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.views import APIView

from delivery.exceptions import (
    ConfigurationError,
    InvalidJobStateError,
    JobNotFoundError,
    QueuePausedError,
    StoreUnavailableError,
)
from delivery.exceptions.handlers import custom_exception_handler


class TestCustomExceptionHandler(unittest.TestCase):
    """Test cases for custom exception handler."""

    def setUp(self):
        """Set up test fixtures."""
        self.mock_request = Mock()
        self.mock_request.path = "/api/v1/delivery/queue-monitor/metrics"
        self.mock_request.method = "GET"
        self.mock_request.META = {"REMOTE_ADDR": "127.0.0.1"}

        self.mock_view = Mock(spec=APIView)
        self.mock_view.request = self.mock_request

        self.context = {"view": self.mock_view, "request": self.mock_request}

        patcher = patch("delivery.exceptions.handlers.get_request_id")
        self.mock_get_request_id = patcher.start()
        self.mock_get_request_id.return_value = "test-request-id"
        self.addCleanup(patcher.stop)

    def test_handles_drf_not_found_exception(self):
        """Test that DRF NotFound exception is handled correctly."""
        exc = NotFound("Resource not found")

        response = custom_exception_handler(exc, self.context)

        self.assertIsNotNone(response)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response["X-Request-ID"], "test-request-id")

    def test_handles_drf_validation_error(self):
        """Test that DRF ValidationError is handled correctly."""
        response = custom_exception_handler(ValidationError("Invalid"), self.context)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_handles_django_http404(self):
        """Test that Django Http404 exception is handled correctly."""
        response = custom_exception_handler(Http404("Page not found"), self.context)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIsInstance(response.data, dict)

    def test_maps_delivery_errors_to_status_codes(self):
        """Test operational and configuration errors map to HTTP statuses."""
        cases = [
            (JobNotFoundError("job-1"), status.HTTP_404_NOT_FOUND),
            (QueuePausedError(), status.HTTP_409_CONFLICT),
            (InvalidJobStateError("job-1", "active"), status.HTTP_409_CONFLICT),
            (StoreUnavailableError(), status.HTTP_503_SERVICE_UNAVAILABLE),
            (ConfigurationError("Unknown alert threshold: x"), 400),
        ]
        for exc, expected_status in cases:
            with self.subTest(exc=type(exc).__name__):
                response = custom_exception_handler(exc, self.context)

                self.assertEqual(response.status_code, expected_status)
                self.assertEqual(response.data["status"], expected_status)
                self.assertEqual(response.data["message"], str(exc))
                self.assertEqual(response.data["request_id"], "test-request-id")

    def test_invalid_state_includes_detail(self):
        """Test the conflict detail is returned for invalid job states."""
        exc = InvalidJobStateError(
            "job-1", "waiting", "Only failed jobs can be retried"
        )

        response = custom_exception_handler(exc, self.context)

        self.assertEqual(response.data["message"], "Job job-1 is in state 'waiting'")
        self.assertEqual(response.data["detail"], "Only failed jobs can be retried")

    def test_handles_unexpected_exception(self):
        """Test that unexpected exceptions return 500 error."""
        response = custom_exception_handler(RuntimeError("boom"), self.context)

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["status"], 500)
        self.assertIn("internal server error", response.data["message"].lower())
        self.assertIn("timestamp", response.data)

    @patch("delivery.exceptions.handlers.logger")
    def test_logs_client_errors_as_warnings(self, mock_logger):
        """Test 4xx responses are logged at warning level."""
        custom_exception_handler(JobNotFoundError("job-1"), self.context)

        level = mock_logger.log.call_args[0][0]
        self.assertEqual(level, 30)

    @patch("delivery.exceptions.handlers.logger")
    def test_logs_exception_details(self, mock_logger):
        """Test that exception details are logged."""
        custom_exception_handler(RuntimeError("Test error"), self.context)

        self.assertTrue(mock_logger.log.called)
        self.assertIn("RuntimeError", mock_logger.log.call_args[0][1])


if __name__ == "__main__":
    unittest.main()
