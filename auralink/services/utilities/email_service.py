"""
Email Service
=============

SMTP delivery for advisory notification emails.

Supports implicit SSL (port 465, the default) and STARTTLS. ``send``
reports success as a bool and never raises, so callers can treat mail
as a best-effort side channel.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import formataddr

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """Configuration for email sending."""

    smtp_host: str
    smtp_port: int = 465
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_ssl: bool = True
    smtp_use_tls: bool = False
    from_address: str | None = None
    from_name: str = "AuraLinkPlant"
    timeout: float = 30.0

    @property
    def sender_address(self) -> str:
        return self.from_address or self.smtp_username or "auralink@localhost"

    @property
    def sender(self) -> str:
        """Display form, e.g. ``"AuraLinkPlant" <user@example.com>``."""
        if not self.from_name:
            return self.sender_address
        return formataddr((self.from_name, self.sender_address))


@dataclass
class EmailMessage:
    """Represents a plain-text email message."""

    to_address: str
    subject: str
    body_text: str

    def to_mime(self, from_address: str) -> MIMEText:
        """Convert to MIME message."""
        msg = MIMEText(self.body_text, "plain", "utf-8")
        msg["Subject"] = self.subject
        msg["From"] = from_address
        msg["To"] = self.to_address
        return msg


class EmailService:
    """
    Email sending service.

    Provides a clean interface for sending emails via SMTP.
    """

    def __init__(self, config: EmailConfig | None = None):
        """
        Initialize EmailService.

        Args:
            config: Optional default email configuration.
                    Can be overridden per-send call.
        """
        self._default_config = config

    def send(
        self,
        message: EmailMessage,
        config: EmailConfig | None = None,
    ) -> bool:
        """
        Send an email message.

        Args:
            message: The email message to send.
            config: Optional config override (uses default if not provided).

        Returns:
            True if email was sent successfully, False otherwise.
        """
        cfg = config or self._default_config
        if not cfg:
            logger.error("No email configuration provided")
            return False

        if not cfg.smtp_host:
            logger.error("SMTP host not configured")
            return False

        if not message.to_address:
            logger.warning("Email '%s' has no recipient; not sent", message.subject)
            return False

        try:
            mime_msg = message.to_mime(cfg.sender)
            context = ssl.create_default_context()

            if cfg.smtp_use_ssl:
                server = smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout, context=context)
            else:
                server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout)

            with server:
                if cfg.smtp_use_tls and not cfg.smtp_use_ssl:
                    server.starttls(context=context)
                if cfg.smtp_username and cfg.smtp_password:
                    server.login(cfg.smtp_username, cfg.smtp_password)
                server.sendmail(cfg.sender_address, [message.to_address], mime_msg.as_string())

            logger.info("Email sent to %s", message.to_address)
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error("SMTP authentication failed: %s", e)
            return False
        except smtplib.SMTPException as e:
            logger.error("SMTP error sending email: %s", e)
            return False
        except Exception as e:
            logger.error("Failed to send email: %s", e)
            return False
