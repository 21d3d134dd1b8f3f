"""
Favorite Repository

Per-user bookmarks on files and folders.
"""

from typing import Any
from typing import Dict
from typing import List
from uuid import UUID
from uuid import uuid4

from vdr_api.db.warehouse import affected_rows


class FavoriteRepository:
    """Favorite repository."""

    def __init__(self, db):
        self.db = db

    async def list(self, user_email: str) -> List[Dict[str, Any]]:
        """List favorites with the display details of the item they point at."""
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT fav.id, fav.item_id, fav.item_type, fav.created_at,
                       COALESCE(fo.name, fi.name) AS name,
                       fi.file_size AS size,
                       fi.file_type,
                       fi.folder_id,
                       parent.name AS folder_name,
                       (SELECT COUNT(*) FROM files c WHERE c.folder_id = fo.id) AS file_count
                FROM favorites fav
                LEFT JOIN folders fo ON fav.item_type = 'folder' AND fo.id = fav.item_id
                LEFT JOIN files fi ON fav.item_type = 'file' AND fi.id = fav.item_id
                LEFT JOIN folders parent ON parent.id = fi.folder_id
                WHERE fav.user_email = $1
                ORDER BY fav.created_at DESC
                """,
                user_email,
            )

    async def add(self, user_email: str, item_id: UUID, item_type: str) -> UUID:
        """Add a favorite; adding an existing one returns its id unchanged."""
        async with self.db.acquire() as conn:
            favorite_id = await conn.fetchval(
                """
                INSERT INTO favorites (id, user_email, item_id, item_type, created_at)
                VALUES ($1, $2, $3, $4, NOW())
                ON CONFLICT (user_email, item_id, item_type) DO NOTHING
                RETURNING id
                """,
                uuid4(),
                user_email,
                item_id,
                item_type,
            )
            if favorite_id is None:
                favorite_id = await conn.fetchval(
                    "SELECT id FROM favorites WHERE user_email = $1 AND item_id = $2 AND item_type = $3",
                    user_email,
                    item_id,
                    item_type,
                )
        return favorite_id

    async def remove(self, user_email: str, item_id: UUID, item_type: str) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM favorites WHERE user_email = $1 AND item_id = $2 AND item_type = $3",
                user_email,
                item_id,
                item_type,
            )
        return affected_rows(result) > 0
