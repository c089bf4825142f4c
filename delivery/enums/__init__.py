"""Enumerations for the delivery app."""

from delivery.enums.notification import (
    AuditStatus,
    BackoffType,
    Channel,
    JobState,
    Priority,
)

__all__ = ["AuditStatus", "BackoffType", "Channel", "JobState", "Priority"]
