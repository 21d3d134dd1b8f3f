"""
File Repository

Repository for folders, files and file comments.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from uuid import UUID
from uuid import uuid4

from vdr_api.db.warehouse import affected_rows


class FileRepository:
    """Folder and file repository."""

    def __init__(self, db):
        self.db = db

    # ── Folders ──────────────────────────────────────────────────────────────

    async def create_folder(self, name: str, created_by: str) -> Dict[str, Any]:
        """Create a folder and return it."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                INSERT INTO folders (id, name, created_by, created_at)
                VALUES ($1, $2, $3, NOW())
                RETURNING *
                """,
                uuid4(),
                name,
                created_by,
            )

    async def list_folders(self) -> List[Dict[str, Any]]:
        """List folders with their file count and total size in bytes."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT f.id, f.name, f.created_by, f.created_at,
                       COUNT(fi.id) AS file_count,
                       COALESCE(SUM(fi.file_size), 0) AS total_size
                FROM folders f
                LEFT JOIN files fi ON fi.folder_id = f.id
                GROUP BY f.id, f.name, f.created_by, f.created_at
                ORDER BY f.created_at DESC
                """
            )

    async def get_folder(self, folder_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM folders WHERE id = $1", folder_id)

    async def rename_folder(self, folder_id: UUID, name: str) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("UPDATE folders SET name = $2 WHERE id = $1", folder_id, name)
        return affected_rows(result) == 1

    # ── Files ────────────────────────────────────────────────────────────────

    async def create_file(
        self,
        folder_id: UUID,
        name: str,
        blob_key: str,
        file_size: int,
        file_type: Optional[str],
        uploaded_by: str,
    ) -> Dict[str, Any]:
        """Register an uploaded file and return it."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                INSERT INTO files (id, folder_id, name, blob_key, file_size, file_type, uploaded_by, uploaded_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
                RETURNING *
                """,
                uuid4(),
                folder_id,
                name,
                blob_key,
                file_size,
                file_type,
                uploaded_by,
            )

    async def get_file(self, file_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM files WHERE id = $1", file_id)

    async def list_folder_files(self, folder_id: UUID) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                "SELECT * FROM files WHERE folder_id = $1 ORDER BY uploaded_at DESC",
                folder_id,
            )

    async def list_files(
        self, folder_id: Optional[UUID], limit: int, offset: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of files (newest first) and the total count."""
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM files
                WHERE ($1::uuid IS NULL OR folder_id = $1)
                ORDER BY uploaded_at DESC
                LIMIT $2 OFFSET $3
                """,
                folder_id,
                limit,
                offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM files WHERE ($1::uuid IS NULL OR folder_id = $1)",
                folder_id,
            )
        return rows, total

    async def increment_views(self, file_id: UUID) -> None:
        async with self.db.acquire() as conn:
            await conn.execute("UPDATE files SET views_count = views_count + 1 WHERE id = $1", file_id)

    async def increment_downloads(self, file_id: UUID) -> None:
        async with self.db.acquire() as conn:
            await conn.execute("UPDATE files SET downloads_count = downloads_count + 1 WHERE id = $1", file_id)

    async def total_uploaded_bytes(self, user_email: str) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                "SELECT COALESCE(SUM(file_size), 0) FROM files WHERE uploaded_by = $1",
                user_email,
            )

    # ── Comments ─────────────────────────────────────────────────────────────

    async def add_comment(self, file_id: UUID, user_email: str, comment: str) -> Dict[str, Any]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                INSERT INTO file_comments (id, file_id, user_email, comment, created_at)
                VALUES ($1, $2, $3, $4, NOW())
                RETURNING *
                """,
                uuid4(),
                file_id,
                user_email,
                comment,
            )

    async def list_comments(self, file_id: UUID) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                "SELECT * FROM file_comments WHERE file_id = $1 ORDER BY created_at",
                file_id,
            )
