"""EMAIL channel adapter over the SMTP email service."""

import smtplib
from collections.abc import Mapping
from typing import Any

import structlog

from delivery.enums import Channel
from delivery.services.channel_sender import SendResult
from delivery.services.email_service import EmailService

logger = structlog.get_logger(__name__)


class EmailChannelSender:
    """Sends EMAIL notifications; the recipient id is the email address."""

    def __init__(self, email_service: EmailService | None = None) -> None:
        self._email_service = email_service or EmailService()

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        try:
            self._email_service.send_email(
                to_email=recipient_id,
                subject=subject,
                html_content=content,
                reply_to=metadata.get("reply_to"),
            )
        except ValueError as e:
            return SendResult.failed(str(e))
        except (smtplib.SMTPException, OSError) as e:
            return SendResult.failed(f"SMTP error: {e}")
        return SendResult.ok()
