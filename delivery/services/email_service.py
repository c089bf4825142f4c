"""Email service for sending notifications via SMTP."""

import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from django.conf import settings

import structlog

logger = structlog.get_logger(__name__)


class EmailService:
    """Service for sending emails via SMTP.

    Handles message building, HTML/plain text conversion, and SMTP delivery.
    """

    def __init__(self) -> None:
        """Initialize email service with SMTP configuration."""
        self.smtp_host = settings.EMAIL_HOST
        self.smtp_port = settings.EMAIL_PORT
        self.smtp_user = settings.EMAIL_HOST_USER
        self.smtp_password = settings.EMAIL_HOST_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.timeout = settings.EMAIL_TIMEOUT
        self.from_email = settings.DEFAULT_FROM_EMAIL

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        from_email: str | None = None,
        reply_to: str | None = None,
    ) -> bool:
        """Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject line
            html_content: HTML email content
            from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
            reply_to: Optional Reply-To address

        Returns:
            True if email was sent successfully

        Raises:
            ValueError: If email address is invalid
            smtplib.SMTPException: If SMTP operation fails
            OSError: If the SMTP server cannot be reached
        """
        if not self.is_valid_email(to_email):
            error_msg = f"Invalid email address: {to_email}"
            raise ValueError(error_msg)

        sender = from_email or self.from_email

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = to_email
        if reply_to:
            msg["Reply-To"] = reply_to

        # Attach both plain text and HTML versions
        msg.attach(MIMEText(self._html_to_plain(html_content), "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(
                self.smtp_host, self.smtp_port, timeout=self.timeout
            ) as server:
                if self.use_tls:
                    server.starttls()

                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)

                server.send_message(msg)

                logger.info(
                    "email_sent",
                    to_email=to_email,
                    subject=subject,
                )
                return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "email_send_failed",
                to_email=to_email,
                subject=subject,
                error=str(e),
            )
            raise

    @staticmethod
    def is_valid_email(email: str) -> bool:
        """Validate email address format.

        Args:
            email: Email address to validate

        Returns:
            True if email is valid, False otherwise
        """
        pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        return bool(re.match(pattern, email))

    def _html_to_plain(self, html: str) -> str:
        """Convert HTML to plain text.

        Args:
            html: HTML content

        Returns:
            Plain text version of the HTML
        """
        text = re.sub(r"<[^>]+>", "", html)

        text = text.replace("&nbsp;", " ")
        text = text.replace("&lt;", "<")
        text = text.replace("&gt;", ">")
        text = text.replace("&amp;", "&")
        text = text.replace("&quot;", '"')

        text = re.sub(r"\n\s*\n", "\n\n", text)
        return text.strip()
