"""Notification-related enumerations.

This module contains enums for delivery channels, priority lanes, job
lifecycle states and audit statuses used throughout the delivery engine.
"""

from enum import Enum


class Channel(str, Enum):
    """Notification delivery channel types."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"


class Priority(str, Enum):
    """Priority lanes of the delivery queue.

    Members are declared lowest first; use ``rank`` to compare lanes.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        """Return the lane rank, higher is served first."""
        return list(Priority).index(self)

    @classmethod
    def by_rank(cls) -> list["Priority"]:
        """Return all lanes ordered from highest to lowest priority."""
        return sorted(cls, key=lambda p: p.rank, reverse=True)


class JobState(str, Enum):
    """Queue job lifecycle states."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"
    PAUSED = "paused"


class BackoffType(str, Enum):
    """Backoff policy types for store-level enqueue/dispatch retries."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class AuditStatus(str, Enum):
    """Status values written to the audit sink."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
