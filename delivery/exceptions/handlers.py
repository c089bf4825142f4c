"""Global exception handlers for the delivery engine API."""

import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from django.conf import settings
from django.http import Http404

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

from delivery.exceptions.delivery_exceptions import (
    ConfigurationError,
    InvalidJobStateError,
    JobNotFoundError,
    QueuePausedError,
    StoreUnavailableError,
)
from delivery.logging.context import get_request_id

logger = logging.getLogger(__name__)

_DELIVERY_ERROR_STATUS = (
    (JobNotFoundError, status.HTTP_404_NOT_FOUND),
    (QueuePausedError, status.HTTP_409_CONFLICT),
    (InvalidJobStateError, status.HTTP_409_CONFLICT),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
)


def custom_exception_handler(
    exc: Exception, context: dict[str, Any]
) -> Response | None:
    """Custom exception handler for Django REST Framework.

    Handles DRF exceptions and the delivery engine's operational and
    configuration errors, returning the standard response format
    ``{status, message, request_id, timestamp}``.

    Args:
        exc: The exception that was raised.
        context: Context dictionary containing request and view information.

    Returns:
        A Response object with the error details.
    """
    view = context.get("view")
    request = view.request if view else None
    request_id = get_request_id()

    # Let DRF handle its own exceptions first
    response = exception_handler(exc, context)

    if response is None:
        status_code = _status_for(exc)
        if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
            message = "An internal server error occurred."
        elif isinstance(exc, Http404):
            message = "The requested resource was not found."
        else:
            message = str(exc)

        response_data = _create_error_response(
            status_code=status_code,
            message=message,
            request_id=request_id,
        )
        detail = getattr(exc, "detail", None)
        if isinstance(exc, InvalidJobStateError) and detail:
            response_data["detail"] = detail
        response = Response(response_data, status=status_code)

    if request_id and response:
        response["X-Request-ID"] = request_id

    _log_exception(exc, request, response)

    return response


def _status_for(exc: Exception) -> int:
    """Map a non-DRF exception to an HTTP status code."""
    if isinstance(exc, Http404):
        return status.HTTP_404_NOT_FOUND
    for exc_type, status_code in _DELIVERY_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _create_error_response(
    status_code: int, message: str, request_id: str | None
) -> dict[str, Any]:
    """Create a standardized error response.

    Args:
        status_code: The HTTP status code.
        message: The error message to return to the client.
        request_id: The request ID for tracing.

    Returns:
        Dictionary with standard error response format.
    """
    return {
        "status": status_code,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _log_exception(
    exc: Exception,
    request: Any,
    response: Response | None,
) -> None:
    """Log exception details, with a stack trace in DEBUG mode.

    Args:
        exc: The exception that was raised.
        request: The HTTP request object.
        response: The response object (if available).
    """
    status_code = response.status_code if response else 500
    if isinstance(exc, APIException) or 400 <= status_code < 500:
        log_level = logging.WARNING
    else:
        log_level = logging.ERROR

    request_path = request.path if request else "unknown"
    request_method = request.method if request else "unknown"

    log_message = (
        f"Exception occurred: {type(exc).__name__}: {exc} | "
        f"Path: {request_method} {request_path} | "
        f"Status: {status_code}"
    )

    if settings.DEBUG:
        stack_trace = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        log_message += f"\nStack trace:\n{stack_trace}"

    logger.log(log_level, log_message)
