"""Thread-local context for request and job tracking.

API requests carry a request id; delivery worker threads carry the id of the
job they are processing. Both are picked up by the structlog processors.
"""

import threading

_context = threading.local()


def set_request_id(request_id: str) -> None:
    """Store the request ID in thread-local storage.

    Args:
        request_id: The unique request identifier to store.
    """
    _context.request_id = request_id


def get_request_id() -> str | None:
    """Retrieve the request ID from thread-local storage.

    Returns:
        The current request ID, or None if not set.
    """
    return getattr(_context, "request_id", None)


def clear_request_id() -> None:
    """Clear the request ID from thread-local storage."""
    if hasattr(_context, "request_id"):
        delattr(_context, "request_id")


def bind_job_id(job_id: str) -> None:
    """Mark the current thread as processing the given job."""
    _context.job_id = job_id


def get_job_id() -> str | None:
    """Return the job the current thread is processing, if any."""
    return getattr(_context, "job_id", None)


def clear_job_id() -> None:
    """Clear the job ID from thread-local storage."""
    if hasattr(_context, "job_id"):
        delattr(_context, "job_id")
