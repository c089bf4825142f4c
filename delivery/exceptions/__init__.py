"""Exception handling utilities for the delivery engine."""

from delivery.exceptions.delivery_exceptions import (
    ConfigurationError,
    DeliveryError,
    InvalidJobStateError,
    JobNotFoundError,
    PermanentAbandonment,
    QueueOperationalError,
    QueuePausedError,
    StoreUnavailableError,
    TransientSendFailure,
)

__all__ = [
    "ConfigurationError",
    "DeliveryError",
    "InvalidJobStateError",
    "JobNotFoundError",
    "PermanentAbandonment",
    "QueueOperationalError",
    "QueuePausedError",
    "StoreUnavailableError",
    "TransientSendFailure",
]
