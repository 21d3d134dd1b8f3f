"""
Notification Sink

In-app notification records plus outbound email. Every method is best-effort:
failures are logged and swallowed so the operation that triggered the
notification still succeeds.
"""

from html import escape
from typing import Iterable

from loguru import logger

from vdr_api.db.repository_notification import NotificationRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.errors import PersistenceError
from vdr_api.notify.mailer import Mailer


def html_message(text: str) -> str:
    """Wrap a plain sentence in the minimal HTML body used by all notification emails."""
    return f"<p>{escape(text)}</p>"


class Notifier:
    """Best-effort delivery of in-app notifications and email."""

    def __init__(self, notifications: NotificationRepository, users: UserRepository, mailer: Mailer):
        self.notifications = notifications
        self.users = users
        self.mailer = mailer

    async def notify_user(self, email: str, title: str, body: str) -> bool:
        """Create an in-app notification. Returns False if it could not be stored."""
        try:
            await self.notifications.create(email, title, body)
        except PersistenceError as e:
            logger.error(f"Failed to create notification: {e}", recipient=email, title=title)
            return False
        return True

    async def email_user(self, email: str, subject: str, html: str) -> bool:
        """Send an email. Returns whether the mailer reported success."""
        result = await self.mailer.send_mail(email, subject, html)
        if not result.success:
            logger.warning("Notification email not delivered", recipient=email, subject=subject, error=result.error)
        return result.success

    async def notify_and_email(self, email: str, title: str, body: str) -> None:
        """In-app notification plus an email with the same title and text."""
        await self.notify_user(email, title, body)
        await self.email_user(email, title, html_message(body))

    async def notify_many(self, emails: Iterable[str], title: str, body: str) -> None:
        for email in emails:
            await self.notify_and_email(email, title, body)

    async def email_admins(self, subject: str, html: str) -> int:
        """Email every admin; returns how many sends succeeded."""
        try:
            admins = await self.users.list_admins()
        except PersistenceError as e:
            logger.error(f"Failed to look up admins for notification: {e}", subject=subject)
            return 0

        delivered = 0
        for admin in admins:
            if await self.email_user(admin["email"], subject, html):
                delivered += 1

        logger.info("Admin notification sent", subject=subject, admins=len(admins), delivered=delivered)
        return delivered
