"""Structlog configuration for dual output: JSON files and colored console."""

import logging
import logging.handlers
import os
from pathlib import Path

import structlog

from delivery.logging.processors import (
    add_process_info,
    add_request_context,
    add_service_context,
    console_renderer,
)


def setup_logging() -> None:
    """Configure structlog with JSON file logs and colored console logs.

    File Output:
    - JSON formatted with all metadata
    - Rotating file handler (100MB per file)

    Console Output:
    - Format: [LEVEL] timestamp | request_id or job_id | logger_name | message

    Environment Variables:
    - LOG_FILE_PATH: Path to log file (default: ./logs/delivery-engine.log)
    - LOG_LEVEL: Logging level (default: INFO)
    - SERVICE_NAME: Service name for metadata (default: delivery-engine)
    - ENVIRONMENT: Deployment environment (default: development)
    """
    log_file_path = os.getenv("LOG_FILE_PATH", "./logs/delivery-engine.log")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(format="%(message)s", level=level, handlers=[])

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file_path,
        maxBytes=100 * 1024 * 1024,  # 100MB
        backupCount=240,
        encoding="utf-8",
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_request_context,
            add_service_context,
            add_process_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                # For logs from libraries that don't use structlog
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                add_request_context,
                add_service_context,
                add_process_info,
            ],
        )
    )

    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=console_renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                add_request_context,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        log_file=log_file_path,
        log_level=log_level,
    )
