"""
Trash Repository

Moves files and folders into the trash and back. Every move runs in a single
transaction so an item is never in both the live tables and the trash, or in
neither.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID

from vdr_api.db.warehouse import affected_rows

TRASH_FILE_SQL = """
INSERT INTO trash (id, item_type, item_name, deleted_by, deleted_at, restored,
                   folder_id, blob_key, file_size, file_type, uploaded_by, uploaded_at)
SELECT id, 'file', name, $2, NOW(), FALSE,
       folder_id, blob_key, file_size, file_type, uploaded_by, uploaded_at
FROM files WHERE {where}
"""


class TrashRepository:
    """Trash repository."""

    def __init__(self, db):
        self.db = db

    async def trash_file(self, file_id: UUID, deleted_by: str) -> bool:
        """Snapshot a file into the trash and remove it. Returns False if the file does not exist."""
        async with self.db.transaction() as conn:
            result = await conn.execute(TRASH_FILE_SQL.format(where="id = $1"), file_id, deleted_by)
            if affected_rows(result) == 0:
                return False
            await conn.execute("DELETE FROM files WHERE id = $1", file_id)
        return True

    async def trash_folder(self, folder_id: UUID, deleted_by: str) -> Optional[int]:
        """
        Snapshot a folder and all its files into the trash and remove them.

        Returns the number of files moved, or None if the folder does not exist.
        """
        async with self.db.transaction() as conn:
            result = await conn.execute(
                """
                INSERT INTO trash (id, item_type, item_name, deleted_by, deleted_at, restored, created_by, created_at)
                SELECT id, 'folder', name, $2, NOW(), FALSE, created_by, created_at
                FROM folders WHERE id = $1
                """,
                folder_id,
                deleted_by,
            )
            if affected_rows(result) == 0:
                return None
            files_result = await conn.execute(TRASH_FILE_SQL.format(where="folder_id = $1"), folder_id, deleted_by)
            await conn.execute("DELETE FROM files WHERE folder_id = $1", folder_id)
            await conn.execute("DELETE FROM folders WHERE id = $1", folder_id)
        return affected_rows(files_result)

    async def list(self) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch("SELECT * FROM trash ORDER BY deleted_at DESC")

    async def get(self, item_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM trash WHERE id = $1", item_id)

    async def restore(self, entry: Dict[str, Any], restored_by: str) -> None:
        """Re-insert a trash snapshot into its live table and drop the trash row."""
        async with self.db.transaction() as conn:
            if entry["item_type"] == "file":
                await conn.execute(
                    """
                    INSERT INTO files (id, folder_id, name, blob_key, file_size, file_type, uploaded_by, uploaded_at)
                    VALUES ($1, $2, $3, COALESCE($4, ''), COALESCE($5, 0), $6,
                            COALESCE($7, $9), COALESCE($8, NOW()))
                    """,
                    entry["id"],
                    entry["folder_id"],
                    entry["item_name"],
                    entry["blob_key"],
                    entry["file_size"],
                    entry["file_type"],
                    entry["uploaded_by"],
                    entry["uploaded_at"],
                    restored_by,
                )
            else:
                await conn.execute(
                    """
                    INSERT INTO folders (id, name, created_by, created_at)
                    VALUES ($1, $2, COALESCE($3, $5), COALESCE($4, NOW()))
                    """,
                    entry["id"],
                    entry["item_name"],
                    entry["created_by"],
                    entry["created_at"],
                    restored_by,
                )
            await conn.execute("DELETE FROM trash WHERE id = $1", entry["id"])

    async def delete(self, item_id: UUID) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM trash WHERE id = $1", item_id)
        return affected_rows(result) == 1
