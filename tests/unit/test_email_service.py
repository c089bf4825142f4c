"""Tests for EmailService."""

import smtplib
from unittest.mock import MagicMock, patch

from django.test import TestCase, override_settings

from delivery.services.email_service import EmailService


class TestEmailService(TestCase):
    """Test suite for EmailService."""

    def setUp(self):
        """Set up test fixtures."""
        self.email_service = EmailService()

    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_success(self, mock_smtp_class):
        """Test successful email sending."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        result = self.email_service.send_email(
            to_email="test@example.com",
            subject="Test Subject",
            html_content="<p>Test message</p>",
        )

        self.assertIs(result, True)
        mock_smtp.send_message.assert_called_once()
        mock_smtp_class.assert_called_once_with(
            self.email_service.smtp_host,
            self.email_service.smtp_port,
            timeout=self.email_service.timeout,
        )

    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_with_custom_from(self, mock_smtp_class):
        """Test sending email with custom from address."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        self.email_service.send_email(
            to_email="test@example.com",
            subject="Test",
            html_content="<p>Test</p>",
            from_email="custom@example.com",
        )

        message = mock_smtp.send_message.call_args[0][0]
        self.assertEqual(message["From"], "custom@example.com")

    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_with_reply_to(self, mock_smtp_class):
        """Test that a reply-to address is set on the message."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        self.email_service.send_email(
            to_email="test@example.com",
            subject="Test",
            html_content="<p>Test</p>",
            reply_to="support@example.com",
        )

        message = mock_smtp.send_message.call_args[0][0]
        self.assertEqual(message["Reply-To"], "support@example.com")

    def test_send_email_invalid_email(self):
        """Test sending email with invalid email address."""
        with self.assertRaisesRegex(ValueError, "Invalid email address"):
            self.email_service.send_email(
                to_email="invalid-email",
                subject="Test",
                html_content="<p>Test</p>",
            )

    def test_send_email_smtp_exception(self):
        """Test email sending with SMTP exception."""
        with patch("delivery.services.email_service.smtplib.SMTP") as mock_smtp:
            mock_smtp.return_value.__enter__.return_value.send_message.side_effect = (
                smtplib.SMTPException("SMTP error")
            )

            with self.assertRaises(smtplib.SMTPException):
                self.email_service.send_email(
                    to_email="test@example.com",
                    subject="Test",
                    html_content="<p>Test</p>",
                )

    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_connection_refused(self, mock_smtp_class):
        """Test that an unreachable SMTP server raises OSError."""
        mock_smtp_class.side_effect = ConnectionRefusedError("refused")

        with self.assertRaises(OSError):
            self.email_service.send_email(
                to_email="test@example.com",
                subject="Test",
                html_content="<p>Test</p>",
            )

    @override_settings(EMAIL_USE_TLS=True)
    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_uses_tls(self, mock_smtp_class):
        """Test that email service uses TLS."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        EmailService().send_email(
            to_email="test@example.com",
            subject="Test",
            html_content="<p>Test</p>",
        )

        mock_smtp.starttls.assert_called_once()

    @override_settings(EMAIL_HOST_USER="mailer", EMAIL_HOST_PASSWORD="secret")
    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_authenticates(self, mock_smtp_class):
        """Test that email service authenticates with SMTP server."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        EmailService().send_email(
            to_email="test@example.com",
            subject="Test",
            html_content="<p>Test</p>",
        )

        mock_smtp.login.assert_called_once_with("mailer", "secret")

    @override_settings(EMAIL_HOST_USER="", EMAIL_HOST_PASSWORD="")
    @patch("delivery.services.email_service.smtplib.SMTP")
    def test_send_email_skips_login_without_credentials(self, mock_smtp_class):
        """Test that no login happens when credentials are not configured."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        EmailService().send_email(
            to_email="test@example.com",
            subject="Test",
            html_content="<p>Test</p>",
        )

        mock_smtp.login.assert_not_called()

    def test_html_to_plain_conversion(self):
        """Test HTML to plain text conversion."""
        html = "<h1>Title</h1><p>Paragraph with <strong>bold</strong> text.</p>"
        plain = self.email_service._html_to_plain(html)

        self.assertIn("Title", plain)
        self.assertIn("Paragraph with bold text.", plain)
        self.assertNotIn("<h1>", plain)
        self.assertNotIn("<p>", plain)

    def test_html_entities_decoded(self):
        """Test HTML entities are decoded in plain text."""
        html = "<p>&lt;tag&gt; &amp; &quot;quotes&quot; &nbsp;</p>"
        plain = self.email_service._html_to_plain(html)

        self.assertIn("<tag>", plain)
        self.assertIn("&", plain)
        self.assertIn('"quotes"', plain)

    def test_is_valid_email(self):
        """Test email address validation."""
        self.assertTrue(EmailService.is_valid_email("user.name+tag@example.co.uk"))
        self.assertFalse(EmailService.is_valid_email("user@localhost"))
        self.assertFalse(EmailService.is_valid_email("not-an-email"))
