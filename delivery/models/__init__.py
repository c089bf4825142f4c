"""Database models for the delivery app."""

from delivery.models.delivery_job import DeliveryJobRecord

__all__ = ["DeliveryJobRecord"]
