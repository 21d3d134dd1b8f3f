"""SMTP mailer. Sending never raises; callers get a MailResult instead."""

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from loguru import logger

from vdr_api.settings import Settings


@dataclass
class MailResult:
    """Outcome of one send attempt."""

    success: bool
    error: Optional[str] = None


class Mailer:
    """Sends HTML email through the configured SMTP relay."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: str = "dataroom-noreply@example.com",
        use_tls: bool = True,
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_email=settings.notification_from_email,
            use_tls=settings.smtp_use_tls,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    async def send_mail(self, to: str, subject: str, html: str) -> MailResult:
        """
        Send one HTML email.

        Returns ``success=False`` (without attempting delivery) when no SMTP host
        is configured, and ``success=False`` with the error text when delivery fails.
        """
        if not self.is_configured:
            logger.debug("Mailer not configured - skipping email", to=to, subject=subject)
            return MailResult(success=False, error="Mailer not configured")

        try:
            await asyncio.to_thread(self._send, to, subject, html)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Email delivery failed: {e}", to=to, subject=subject)
            return MailResult(success=False, error=str(e))

        logger.info("Email sent", to=to, subject=subject)
        return MailResult(success=True)

    def _send(self, to: str, subject: str, html: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html, "html"))

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
