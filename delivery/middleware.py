"""Request context middleware for the monitor API.

Every request gets an id, reused from ``X-Request-ID`` or generated, that is
bound to the handling thread for the structlog processors. Routes addressing
a single job also bind its id, so a request log line and the delivery log
lines of that job share a ``job_id`` field.
"""

import time
import uuid
from collections.abc import Callable
from typing import Any

from django.http import HttpRequest, HttpResponse

import structlog

from delivery.constants import (
    PROCESS_TIME_HEADER,
    REQUEST_ID_HEADER,
    SLOW_REQUEST_THRESHOLD_SECONDS,
)
from delivery.logging.context import (
    bind_job_id,
    clear_job_id,
    clear_request_id,
    set_request_id,
)

logger = structlog.get_logger(__name__)


class RequestContextMiddleware:
    """Binds request and job ids for logging and times each request."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_id(request_id)
        request.request_id = request_id  # type: ignore[attr-defined]

        started = time.monotonic()
        try:
            response = self.get_response(request)
            duration = time.monotonic() - started
            response[REQUEST_ID_HEADER] = request_id
            response[PROCESS_TIME_HEADER] = f"{duration:.6f}"
            log = (
                logger.warning
                if duration > SLOW_REQUEST_THRESHOLD_SECONDS
                else logger.info
            )
            log(
                "request_completed",
                method=request.method,
                path=request.path,
                status=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            # Server threads are reused across requests
            clear_job_id()
            clear_request_id()

    def process_view(
        self,
        request: HttpRequest,
        view_func: Callable[..., Any],
        view_args: tuple,
        view_kwargs: dict[str, Any],
    ) -> None:
        """Bind the job id of routes such as ``queue-monitor/jobs/<job_id>``."""
        job_id = view_kwargs.get("job_id")
        if job_id:
            bind_job_id(job_id)
