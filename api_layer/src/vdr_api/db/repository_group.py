"""
Group Repository

Named groups of user emails.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4


class GroupRepository:
    """Group repository."""

    def __init__(self, db):
        self.db = db

    async def list(self) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch("SELECT * FROM groups ORDER BY created_at DESC")

    async def create(self, name: str, members: List[str], created_by: str) -> Dict[str, Any]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                INSERT INTO groups (id, name, members, created_by, created_at)
                VALUES ($1, $2, $3, $4, NOW())
                RETURNING *
                """,
                uuid4(),
                name,
                members,
                created_by,
            )

    async def delete(self, group_id: UUID) -> Optional[Dict[str, Any]]:
        """Delete a group and return the removed row, or None if it did not exist."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow("DELETE FROM groups WHERE id = $1 RETURNING *", group_id)
