"""Notification schemas: the unit of work accepted by the delivery queue."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import ConfigDict, Field

from delivery.enums import Channel, Priority
from delivery.schemas.base_schema_model import BaseSchemaModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationMetadata(BaseSchemaModel):
    """Typed key/value metadata attached to a notification.

    Recognized keys:
    - correlation_id: Caller-side id used to correlate logs and audit events
    - template_id: Identifier of the template the content was rendered from
    - locale: Locale the content was rendered in (e.g. ``en-US``)
    - reply_to: Reply address for EMAIL deliveries
    - tags: Free-form labels for reporting

    Any other key is kept as an extra scalar value and forwarded to the
    channel sender untouched.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    __pydantic_extra__: dict[str, str | int | float | bool] = Field(init=False)

    correlation_id: str | None = None
    template_id: str | None = None
    locale: str | None = None
    reply_to: str | None = None
    tags: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        """Return recognized keys that are set plus all extra keys."""
        return self.model_dump(exclude_none=True, exclude_defaults=True)


class Notification(BaseSchemaModel):
    """An outbound notification.

    Notifications are immutable once created: ``id`` is assigned at creation
    and ``channel`` never changes. Read-state updates belong to the caller's
    persistence layer, which creates a new copy via ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    recipient_id: str = Field(..., min_length=1)
    channel: Channel
    priority: Priority = Priority.MEDIUM
    subject: str = ""
    content: str
    metadata: NotificationMetadata = Field(default_factory=NotificationMetadata)
    read: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
