"""Engine settings parsed from the Django ``DELIVERY_ENGINE`` setting."""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import Field

from delivery.constants import (
    DEFAULT_MAX_LANE_SKIPS,
    DEFAULT_RETRY_TICK_SECONDS,
    DEFAULT_SEND_TIMEOUT_SECONDS,
    DEFAULT_WORKER_COUNT,
)
from delivery.schemas import AlertThresholds, ConfigSchemaModel, RetryConfig


class EngineSettings(ConfigSchemaModel):
    """Validated delivery engine configuration.

    Invalid values raise ``ConfigurationError`` when the settings are built,
    which happens once at startup in the composition root.
    """

    worker_count: int = Field(DEFAULT_WORKER_COUNT, ge=1)
    send_timeout_seconds: float = Field(DEFAULT_SEND_TIMEOUT_SECONDS, gt=0)
    max_lane_skips: int = Field(DEFAULT_MAX_LANE_SKIPS, ge=1)
    job_store: Literal["memory", "django"] = "memory"
    retry: RetryConfig = Field(default_factory=RetryConfig)
    retry_tick_seconds: float = Field(DEFAULT_RETRY_TICK_SECONDS, gt=0)
    alert_interval_seconds: float = Field(0.0, ge=0)
    thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    sms_gateway_url: str = ""
    push_gateway_url: str = ""
    gateway_api_key: str = ""

    @classmethod
    def from_django_settings(
        cls, raw: Mapping[str, Any] | None = None
    ) -> "EngineSettings":
        """Build settings from the ``DELIVERY_ENGINE`` dict.

        Args:
            raw: Settings dict; defaults to ``settings.DELIVERY_ENGINE``.

        Returns:
            Validated EngineSettings.

        Raises:
            ConfigurationError: If any value is invalid.
        """
        if raw is None:
            from django.conf import settings  # noqa: PLC0415

            raw = getattr(settings, "DELIVERY_ENGINE", {})

        retry = raw.get("RETRY", {})
        alerts = raw.get("ALERTS", {})
        gateways = raw.get("GATEWAYS", {})

        retry_config = RetryConfig(
            **_present(
                max_attempts=retry.get("MAX_ATTEMPTS"),
                initial_delay_ms=retry.get("INITIAL_DELAY_MS"),
                max_delay_ms=retry.get("MAX_DELAY_MS"),
                backoff_factor=retry.get("BACKOFF_FACTOR"),
            )
        )
        thresholds = AlertThresholds(
            **_present(
                failure_rate_threshold=alerts.get("FAILURE_RATE_THRESHOLD"),
                retry_attempts_threshold=alerts.get("RETRY_ATTEMPTS_THRESHOLD"),
                consecutive_failures_threshold=alerts.get(
                    "CONSECUTIVE_FAILURES_THRESHOLD"
                ),
                hourly_failure_rate_threshold=alerts.get(
                    "HOURLY_FAILURE_RATE_THRESHOLD"
                ),
            )
        )
        return cls(
            **_present(
                worker_count=raw.get("WORKER_COUNT"),
                send_timeout_seconds=raw.get("SEND_TIMEOUT_SECONDS"),
                max_lane_skips=raw.get("MAX_LANE_SKIPS"),
                job_store=raw.get("JOB_STORE"),
                retry_tick_seconds=retry.get("TICK_SECONDS"),
                alert_interval_seconds=alerts.get("INTERVAL_SECONDS"),
                sms_gateway_url=gateways.get("SMS_URL"),
                push_gateway_url=gateways.get("PUSH_URL"),
                gateway_api_key=gateways.get("API_KEY"),
            ),
            retry=retry_config,
            thresholds=thresholds,
        )


def _present(**values: Any) -> dict[str, Any]:
    """Drop unset values so model defaults apply."""
    return {key: value for key, value in values.items() if value is not None}
