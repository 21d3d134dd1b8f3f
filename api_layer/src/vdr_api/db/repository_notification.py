"""
Notification Repository

Repository for in-app notifications.
"""

from typing import Any
from typing import Dict
from typing import List
from uuid import UUID
from uuid import uuid4

from vdr_api.db.warehouse import affected_rows


class NotificationRepository:
    """In-app notification repository."""

    def __init__(self, db):
        self.db = db

    async def create(self, user_email: str, title: str, body: str) -> UUID:
        """Create an unread notification."""
        notification_id = uuid4()

        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO notifications (id, user_email, title, body, is_read, created_at)
                VALUES ($1, $2, $3, $4, FALSE, NOW())
                """,
                notification_id,
                user_email,
                title,
                body,
            )

        return notification_id

    async def list(self, user_email: str) -> List[Dict[str, Any]]:
        """List a user's notifications, newest first."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                "SELECT * FROM notifications WHERE user_email = $1 ORDER BY created_at DESC",
                user_email,
            )

    async def mark_read(self, user_email: str, notification_id: UUID) -> bool:
        """Mark one of the user's notifications as read."""
        async with self.db.acquire() as conn:
            result = await conn.execute(
                "UPDATE notifications SET is_read = TRUE WHERE id = $1 AND user_email = $2",
                notification_id,
                user_email,
            )
        return affected_rows(result) == 1

    async def delete(self, user_email: str, notification_id: UUID) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM notifications WHERE id = $1 AND user_email = $2",
                notification_id,
                user_email,
            )
        return affected_rows(result) == 1

    async def clear(self, user_email: str) -> int:
        """Delete all of a user's notifications; returns how many were removed."""
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM notifications WHERE user_email = $1", user_email)
        return affected_rows(result)
