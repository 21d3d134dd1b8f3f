"""Tests for the mailer and the notification sink."""

import smtplib
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest

from vdr_api.db.repository_notification import NotificationRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.errors import PersistenceError
from vdr_api.notify.mailer import MailResult
from vdr_api.notify.mailer import Mailer
from vdr_api.notify.notifier import Notifier
from vdr_api.notify.notifier import html_message


class TestMailer:
    """Tests for SMTP delivery."""

    @pytest.mark.asyncio
    async def test_unconfigured_mailer_skips(self):
        result = await Mailer(host=None).send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert result == MailResult(success=False, error="Mailer not configured")

    @pytest.mark.asyncio
    @patch("vdr_api.notify.mailer.smtplib.SMTP")
    async def test_send_uses_tls_and_login(self, mock_smtp):
        server = mock_smtp.return_value.__enter__.return_value
        mailer = Mailer(host="smtp.example.com", username="bot", password="pw")

        result = await mailer.send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert result.success
        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=15.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    @patch("vdr_api.notify.mailer.smtplib.SMTP")
    async def test_delivery_failure_reported(self, mock_smtp):
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("relay denied")

        result = await Mailer(host="smtp.example.com").send_mail("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success
        assert "relay denied" in result.error


@pytest.fixture
def notifier():
    notifications = MagicMock(spec=NotificationRepository)
    users = MagicMock(spec=UserRepository)
    mailer = MagicMock(spec=Mailer)
    mailer.send_mail = AsyncMock(return_value=MailResult(success=True))
    return Notifier(notifications, users, mailer)


class TestNotifier:
    """Tests for best-effort notifications."""

    def test_html_message_escapes(self):
        assert html_message("<b>deck</b> & notes") == "<p>&lt;b&gt;deck&lt;/b&gt; &amp; notes</p>"

    @pytest.mark.asyncio
    async def test_notify_user_swallows_persistence_errors(self, notifier):
        notifier.notifications.create.side_effect = PersistenceError("warehouse down")

        assert await notifier.notify_user("a@example.com", "Title", "Body") is False

    @pytest.mark.asyncio
    async def test_notify_and_email(self, notifier):
        await notifier.notify_and_email("a@example.com", "Access approved", "You can view deck.pdf")

        notifier.notifications.create.assert_awaited_once_with("a@example.com", "Access approved", "You can view deck.pdf")
        notifier.mailer.send_mail.assert_awaited_once_with(
            "a@example.com", "Access approved", "<p>You can view deck.pdf</p>"
        )

    @pytest.mark.asyncio
    async def test_email_admins_counts_deliveries(self, notifier):
        notifier.users.list_admins.return_value = [{"email": "a1@example.com"}, {"email": "a2@example.com"}]
        notifier.mailer.send_mail.side_effect = [MailResult(success=True), MailResult(success=False, error="x")]

        assert await notifier.email_admins("New request", "<p>New request</p>") == 1

    @pytest.mark.asyncio
    async def test_email_admins_lookup_failure(self, notifier):
        notifier.users.list_admins.side_effect = PersistenceError("warehouse down")

        assert await notifier.email_admins("New request", "<p>New request</p>") == 0
        notifier.mailer.send_mail.assert_not_called()
