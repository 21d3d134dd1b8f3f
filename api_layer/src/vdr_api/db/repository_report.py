"""
Report Repository

Read-only aggregates over files and approved access requests.
"""

from typing import Any
from typing import Dict
from typing import List
from uuid import UUID


class ReportRepository:
    """Reporting queries."""

    def __init__(self, db):
        self.db = db

    async def files(self) -> List[Dict[str, Any]]:
        """Every file with its counters and folder name, most viewed first."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT f.id, f.name, f.file_size, f.file_type, f.folder_id, fo.name AS folder_name,
                       f.uploaded_by, f.uploaded_at, f.views_count, f.downloads_count, f.shares_count
                FROM files f
                LEFT JOIN folders fo ON fo.id = f.folder_id
                ORDER BY f.views_count DESC, f.uploaded_at DESC
                """
            )

    async def shared_files(self) -> List[Dict[str, Any]]:
        """Files with at least one approved request; share_count counts distinct users."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT f.id, f.name, f.file_size, f.file_type, f.folder_id, fo.name AS folder_name,
                       f.uploaded_by, f.uploaded_at, f.views_count, f.downloads_count,
                       COUNT(DISTINCT ar.user_email) AS share_count,
                       MAX(ar.approved_at) AS last_shared_at
                FROM files f
                LEFT JOIN folders fo ON fo.id = f.folder_id
                JOIN access_requests ar
                  ON ar.item_id = f.id AND ar.item_type = 'file' AND ar.status = 'approved'
                GROUP BY f.id, fo.name
                ORDER BY share_count DESC, last_shared_at DESC
                """
            )

    async def approved_file_shares(self) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT id, item_id, user_email, access_types, approved_by, approved_at, requested_at
                FROM access_requests
                WHERE item_type = 'file' AND status = 'approved'
                ORDER BY approved_at DESC
                """
            )

    async def file_share_activity(self, file_id: UUID) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT id, user_email AS requested_by, access_types, approved_by, approved_at, requested_at
                FROM access_requests
                WHERE item_id = $1 AND item_type = 'file' AND status = 'approved'
                ORDER BY approved_at DESC
                """,
                file_id,
            )
