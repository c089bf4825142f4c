"""Schemas for alert thresholds and alert reports."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from delivery.constants import (
    DEFAULT_CONSECUTIVE_FAILURES_THRESHOLD,
    DEFAULT_FAILURE_RATE_THRESHOLD,
    DEFAULT_HOURLY_FAILURE_RATE_THRESHOLD,
    DEFAULT_RETRY_ATTEMPTS_THRESHOLD,
)
from delivery.exceptions import ConfigurationError
from delivery.schemas.base_schema_model import BaseSchemaModel, ConfigSchemaModel
from delivery.schemas.metrics import NotificationMetrics


class AlertThresholds(ConfigSchemaModel):
    """Thresholds that trigger delivery alerts when strictly exceeded."""

    failure_rate_threshold: float = Field(DEFAULT_FAILURE_RATE_THRESHOLD, ge=0, le=1)
    retry_attempts_threshold: float = Field(DEFAULT_RETRY_ATTEMPTS_THRESHOLD, ge=0)
    consecutive_failures_threshold: int = Field(
        DEFAULT_CONSECUTIVE_FAILURES_THRESHOLD, ge=1
    )
    hourly_failure_rate_threshold: float = Field(
        DEFAULT_HOURLY_FAILURE_RATE_THRESHOLD, ge=0, le=1
    )

    def merged(
        self, overrides: "Mapping[str, Any] | AlertThresholds | None" = None
    ) -> "AlertThresholds":
        """Return a copy with ``overrides`` applied field by field.

        Keys may be field names or their camelCase aliases. ``None`` values
        leave the current value in place.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        if overrides is None:
            return self
        if isinstance(overrides, AlertThresholds):
            overrides = overrides.model_dump(exclude_unset=True)

        by_alias = {
            (info.alias or name): name for name, info in type(self).model_fields.items()
        }
        values = self.model_dump()
        for key, value in overrides.items():
            name = key if key in values else by_alias.get(key)
            if name is None:
                raise ConfigurationError(f"Unknown alert threshold: {key}")
            if value is not None:
                values[name] = value
        return AlertThresholds(**values)


class AlertReport(BaseSchemaModel):
    """Result of an alert evaluation."""

    alerts: list[str]
    metrics: NotificationMetrics
    thresholds: AlertThresholds
