"""Django application configuration for the delivery engine."""

from django.apps import AppConfig
from django.conf import settings

import structlog

logger = structlog.get_logger(__name__)


class DeliveryConfig(AppConfig):
    """Configuration class for the delivery application.

    ``ready`` builds the engine once per process and keeps it on the app
    config. Threads are started by the process entry point (WSGI or the
    ``rundelivery`` command), never at import time.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "delivery"

    engine = None

    def ready(self) -> None:
        """Configure logging and build the delivery engine."""
        from delivery.container import build_engine  # noqa: PLC0415
        from delivery.logging import setup_logging  # noqa: PLC0415

        if not getattr(settings, "TEST_MODE", False):
            setup_logging()

        self.engine = build_engine()
        logger.info("delivery_engine_built", job_store=self.engine.settings.job_store)


def get_engine():
    """Return the engine built by the delivery app config."""
    from django.apps import apps  # noqa: PLC0415

    return apps.get_app_config("delivery").engine


def release_engine() -> None:
    """Drop the engine of this process so the monitor API answers 503.

    Engine state lives in memory, so a process that does not run the engine
    would otherwise report an idle, empty queue.
    """
    from django.apps import apps  # noqa: PLC0415

    config = apps.get_app_config("delivery")
    if config.engine is not None:
        config.engine.stop()
        config.engine = None
        logger.info("delivery_engine_released")
