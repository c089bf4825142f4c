"""Logging utilities for the delivery engine."""

from delivery.logging.config import setup_logging
from delivery.logging.context import (
    bind_job_id,
    clear_job_id,
    clear_request_id,
    get_job_id,
    get_request_id,
    set_request_id,
)

__all__ = [
    "bind_job_id",
    "clear_job_id",
    "clear_request_id",
    "get_job_id",
    "get_request_id",
    "set_request_id",
    "setup_logging",
]
