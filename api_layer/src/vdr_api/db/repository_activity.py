"""
Activity Log Repository

Append-only audit trail of user actions (``user_logs``).
"""

import json
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from uuid import UUID
from uuid import uuid4


class ActivityRepository:
    """Activity log repository (append-only)."""

    def __init__(self, db):
        self.db = db

    async def append(
        self,
        action: str,
        user_email: Optional[str],
        user_name: Optional[str],
        role: Optional[str],
        description: Optional[str] = None,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> UUID:
        """Append one activity row."""
        log_id = uuid4()
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO user_logs
                    (id, user_email, user_name, role, action, description, resource_id, resource_type,
                     ip_address, user_agent, meta, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11::jsonb, NOW())
                """,
                log_id,
                user_email,
                user_name,
                role,
                action,
                description,
                resource_id,
                resource_type,
                ip_address,
                user_agent,
                json.dumps(meta, default=str) if meta is not None else None,
            )
        return log_id

    async def search(
        self,
        user: Optional[str],
        query: Optional[str],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        limit: int,
        offset: int,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Filter the trail, newest first.

        Args:
            user: Exact user email
            query: Case-insensitive substring of description, action, resource id or resource type
            date_from: Inclusive lower bound on created_at
            date_to: Inclusive upper bound on created_at
            limit: Page size
            offset: Rows to skip

        Returns:
            (rows, total matching count)
        """
        where = """
            WHERE ($1::text IS NULL OR user_email = $1)
              AND ($2::text IS NULL OR description ILIKE $2 OR action ILIKE $2
                   OR resource_id ILIKE $2 OR resource_type ILIKE $2)
              AND ($3::timestamptz IS NULL OR created_at >= $3)
              AND ($4::timestamptz IS NULL OR created_at <= $4)
        """
        pattern = f"%{query}%" if query else None

        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM user_logs {where} ORDER BY created_at DESC LIMIT $5 OFFSET $6",
                user,
                pattern,
                date_from,
                date_to,
                limit,
                offset,
            )
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM user_logs {where}",
                user,
                pattern,
                date_from,
                date_to,
            )
        return rows, total
