"""
Storage Repository

Personal storage: per-user quota bookkeeping and the items a user has saved
into it. Quota checks and the entries they admit are committed together.
"""

import math
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import uuid4

from vdr_api.errors import PaymentRequiredError

BYTES_PER_MB = 1024 * 1024


def size_in_mb(size_bytes: Optional[int]) -> int:
    """Billable size of a file: whole megabytes, rounded up, never below 1."""
    return max(1, math.ceil((size_bytes or 0) / BYTES_PER_MB))


class StorageRepository:
    """Personal storage repository."""

    def __init__(self, db, default_quota_mb: int = 5000):
        self.db = db
        self.default_quota_mb = default_quota_mb

    async def _ensure_account(self, conn, user_email: str) -> Dict[str, Any]:
        await conn.execute(
            """
            INSERT INTO user_storage (user_email, quota_mb, used_mb)
            VALUES ($1, $2, 0)
            ON CONFLICT (user_email) DO NOTHING
            """,
            user_email,
            self.default_quota_mb,
        )
        return await conn.fetchrow(
            "SELECT quota_mb, used_mb FROM user_storage WHERE user_email = $1 FOR UPDATE",
            user_email,
        )

    async def get_account(self, user_email: str) -> Dict[str, Any]:
        """Return ``{quota_mb, used_mb}``, creating the account on first use."""
        async with self.db.transaction() as conn:
            return await self._ensure_account(conn, user_email)

    async def list_entries(self, user_email: str) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch(
                "SELECT * FROM storage_files WHERE user_email = $1 ORDER BY created_at DESC",
                user_email,
            )

    async def add_file(self, user_email: str, file: Dict[str, Any]) -> Dict[str, Any]:
        """
        Save a data room file into personal storage.

        Raises:
            PaymentRequiredError: The file does not fit in the remaining quota
        """
        size_mb = size_in_mb(file["file_size"])
        storage_ref = uuid4().hex

        async with self.db.transaction() as conn:
            self._check_quota(await self._ensure_account(conn, user_email), size_mb)
            entry = await conn.fetchrow(
                """
                INSERT INTO storage_files (id, user_email, item_id, item_type, item_name, size_mb, storage_ref, created_at)
                VALUES ($1, $2, $3, 'file', $4, $5, $6, NOW())
                RETURNING *
                """,
                uuid4(),
                user_email,
                file["id"],
                file["name"],
                size_mb,
                storage_ref,
            )
            await conn.execute("UPDATE files SET downloads_count = downloads_count + 1 WHERE id = $1", file["id"])
            await conn.execute("UPDATE user_storage SET used_mb = used_mb + $2 WHERE user_email = $1", user_email, size_mb)
        return entry

    async def add_folder(self, user_email: str, folder: Dict[str, Any], files: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Save a folder and every file in it; the files are linked to the folder entry.

        Raises:
            PaymentRequiredError: The folder does not fit in the remaining quota
        """
        sizes = [size_in_mb(f["file_size"]) for f in files]
        total_mb = sum(sizes)
        folder_ref = uuid4().hex

        async with self.db.transaction() as conn:
            self._check_quota(await self._ensure_account(conn, user_email), total_mb)
            entry = await conn.fetchrow(
                """
                INSERT INTO storage_files (id, user_email, item_id, item_type, item_name, size_mb, storage_ref, created_at)
                VALUES ($1, $2, $3, 'folder', $4, 0, $5, NOW())
                RETURNING *
                """,
                uuid4(),
                user_email,
                folder["id"],
                folder["name"],
                folder_ref,
            )
            for file, size_mb in zip(files, sizes):
                await conn.execute(
                    """
                    INSERT INTO storage_files
                        (id, user_email, item_id, item_type, item_name, size_mb, storage_ref, parent_ref, created_at)
                    VALUES ($1, $2, $3, 'file', $4, $5, $6, $7, NOW())
                    """,
                    uuid4(),
                    user_email,
                    file["id"],
                    file["name"],
                    size_mb,
                    uuid4().hex,
                    folder_ref,
                )
            await conn.execute("UPDATE user_storage SET used_mb = used_mb + $2 WHERE user_email = $1", user_email, total_mb)
        entry["total_size_mb"] = total_mb
        entry["file_count"] = len(files)
        return entry

    async def remove(self, user_email: str, ref: str) -> Optional[int]:
        """
        Remove an entry by storage ref (or, for older entries, by item id).

        Removing a folder entry also removes its files. Returns the megabytes
        freed, or None if nothing matched.
        """
        async with self.db.transaction() as conn:
            entry = await conn.fetchrow(
                "SELECT * FROM storage_files WHERE user_email = $1 AND storage_ref = $2",
                user_email,
                ref,
            )
            if entry is None:
                entry = await conn.fetchrow(
                    "SELECT * FROM storage_files WHERE user_email = $1 AND item_id::text = $2 LIMIT 1",
                    user_email,
                    ref,
                )
            if entry is None:
                return None

            freed = await conn.fetchval(
                """
                WITH removed AS (
                    DELETE FROM storage_files
                    WHERE user_email = $1 AND (storage_ref = $2 OR parent_ref = $2)
                    RETURNING size_mb
                )
                SELECT COALESCE(SUM(size_mb), 0)::int FROM removed
                """,
                user_email,
                entry["storage_ref"],
            )
            await conn.execute(
                "UPDATE user_storage SET used_mb = GREATEST(used_mb - $2, 0) WHERE user_email = $1",
                user_email,
                freed,
            )
        return freed

    @staticmethod
    def _check_quota(account: Dict[str, Any], needed_mb: int) -> None:
        available = account["quota_mb"] - account["used_mb"]
        if needed_mb > available:
            raise PaymentRequiredError(
                "Storage quota exceeded",
                extra={"needed": needed_mb, "available": available},
            )
