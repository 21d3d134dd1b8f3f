"""
Access Request Repository

Persistence for access requests and the per-file share counter they drive.
"""

from contextlib import asynccontextmanager
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

from vdr_api.db.warehouse import affected_rows


class AccessRequestRepository:
    """Access request repository."""

    def __init__(self, db):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["AccessRequestRepository"]:
        """Yield a repository whose statements all run in one transaction."""
        async with self.db.transaction() as session:
            yield AccessRequestRepository(session)

    async def create(
        self,
        user_email: str,
        item_id: UUID,
        item_type: str,
        item_name: str,
        access_types: List[str],
    ) -> UUID:
        """Create a pending access request."""
        request_id = uuid4()
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO access_requests
                    (id, user_email, item_id, item_type, item_name, access_types, status, requested_at)
                VALUES ($1, $2, $3, $4, $5, $6, 'pending', NOW())
                """,
                request_id,
                user_email,
                item_id,
                item_type,
                item_name,
                access_types,
            )
        return request_id

    async def get(self, request_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM access_requests WHERE id = $1", request_id)

    async def list_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Newest requests first."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                "SELECT * FROM access_requests ORDER BY requested_at DESC LIMIT $1",
                limit,
            )

    async def set_status(self, request_id: UUID, status: str, approver_email: str) -> bool:
        """Decide a pending request. Returns False when the request is no longer pending."""
        async with self.db.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE access_requests
                SET status = $2, approved_at = NOW(), approved_by = $3
                WHERE id = $1 AND status = 'pending'
                """,
                request_id,
                status,
                approver_email,
            )
        return affected_rows(result) == 1

    async def count_other_approved(self, user_email: str, item_id: UUID, item_type: str, exclude_id: UUID) -> int:
        """Count the user's approved requests for an item, excluding one request."""
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                """
                SELECT COUNT(*) FROM access_requests
                WHERE user_email = $1 AND item_id = $2 AND item_type = $3
                  AND status = 'approved' AND id <> $4
                """,
                user_email,
                item_id,
                item_type,
                exclude_id,
            )

    async def increment_share_count(self, file_id: UUID) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                "UPDATE files SET shares_count = shares_count + 1 WHERE id = $1",
                file_id,
            )

    async def list_approved_for_user(self, user_email: str, item_id: UUID, item_type: str) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT * FROM access_requests
                WHERE user_email = $1 AND item_id = $2 AND item_type = $3 AND status = 'approved'
                ORDER BY approved_at
                """,
                user_email,
                item_id,
                item_type,
            )

    async def list_approved_for_item(self, item_id: UUID, item_type: str) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT * FROM access_requests
                WHERE item_id = $1 AND item_type = $2 AND status = 'approved'
                ORDER BY approved_at DESC
                """,
                item_id,
                item_type,
            )

    async def update_access_types(self, request_id: UUID, access_types: List[str]) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                "UPDATE access_requests SET access_types = $2 WHERE id = $1",
                request_id,
                access_types,
            )

    async def delete(self, request_id: UUID) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM access_requests WHERE id = $1", request_id)
        return affected_rows(result) == 1
