"""IN_APP channel adapter: keeps a per-recipient inbox in memory."""

import threading
from collections import defaultdict
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from delivery.enums import Channel
from delivery.schemas import BaseSchemaModel
from delivery.services.channel_sender import SendResult

logger = structlog.get_logger(__name__)


class InAppMessage(BaseSchemaModel):
    """A message delivered to a recipient's in-app inbox."""

    recipient_id: str
    subject: str
    content: str
    metadata: dict[str, Any]
    read: bool = False
    delivered_at: datetime


class InAppChannelSender:
    """Delivers IN_APP notifications to an inbox; always succeeds."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inbox: dict[str, list[InAppMessage]] = defaultdict(list)

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        message = InAppMessage(
            recipient_id=recipient_id,
            subject=subject,
            content=content,
            metadata=dict(metadata),
            delivered_at=datetime.now(UTC),
        )
        with self._lock:
            self._inbox[recipient_id].append(message)
        logger.info("in_app_message_delivered", recipient_id=recipient_id)
        return SendResult.ok()

    def get_inbox(self, recipient_id: str) -> list[InAppMessage]:
        with self._lock:
            return list(self._inbox.get(recipient_id, []))

    def unread_count(self, recipient_id: str) -> int:
        return sum(1 for message in self.get_inbox(recipient_id) if not message.read)
