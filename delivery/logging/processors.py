"""Custom structlog processors for request/job context and service metadata."""

import os
import threading

from colorama import Fore, Style, init
from structlog.typing import EventDict, WrappedLogger

from delivery.logging.context import get_job_id, get_request_id


def add_request_context(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add request ID and job ID from thread-local context to log events.

    Args:
        _logger: The wrapped logger instance.
        _method_name: The name of the method called on the logger.
        event_dict: The event dictionary to be logged.

    Returns:
        The event dictionary with request_id / job_id added if available.
    """
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    job_id = get_job_id()
    if job_id and "job_id" not in event_dict:
        event_dict["job_id"] = job_id
    return event_dict


def add_service_context(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service_name and environment to all log events."""
    event_dict["service_name"] = os.getenv("SERVICE_NAME", "delivery-engine")
    event_dict["environment"] = os.getenv("ENVIRONMENT", "development")
    return event_dict


def add_process_info(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add process and thread information to log events.

    Worker and sweep threads are named, so thread_name identifies which
    component emitted the event.
    """
    event_dict["process_id"] = os.getpid()
    event_dict["thread_id"] = threading.get_ident()
    event_dict["thread_name"] = threading.current_thread().name
    return event_dict


def console_renderer(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> str:
    """Render log events as colored, pretty-printed strings for console output.

    Format: [LEVEL] timestamp | request_id or job_id | logger_name | message

    Args:
        _logger: The wrapped logger instance (unused, required by structlog interface).
        _method_name: The name of the method called on the logger (unused).
        event_dict: The event dictionary to be logged.

    Returns:
        A formatted, colored string for console output.
    """
    init(autoreset=True)

    level = event_dict.get("level", "INFO").upper()
    timestamp = event_dict.get("timestamp", "")
    correlation_id = event_dict.get(
        "request_id", event_dict.get("job_id", "no-correlation-id")
    )
    logger_name = event_dict.get("logger", "root")
    message = event_dict.get("event", "")

    level_colors = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }
    level_color = level_colors.get(level, Fore.WHITE)

    formatted = (
        f"{level_color}[{level:<8}]{Style.RESET_ALL} "
        f"{Fore.WHITE}{timestamp}{Style.RESET_ALL} | "
        f"{Fore.MAGENTA}{correlation_id}{Style.RESET_ALL} | "
        f"{Fore.BLUE}{logger_name}{Style.RESET_ALL} | "
        f"{message}"
    )

    excluded_fields = {
        "level",
        "timestamp",
        "request_id",
        "job_id",
        "logger",
        "event",
        "process_id",
        "thread_id",
        "thread_name",
        "service_name",
        "environment",
    }

    extra_fields = {k: v for k, v in event_dict.items() if k not in excluded_fields}

    if extra_fields:
        extra_str = " ".join(f"{k}={v}" for k, v in extra_fields.items())
        formatted += f" {Fore.YELLOW}{extra_str}{Style.RESET_ALL}"

    return formatted
