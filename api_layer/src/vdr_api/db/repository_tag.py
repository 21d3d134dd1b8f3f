"""
Tag Repository

Workspace-wide labels with a display color.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

import asyncpg

from vdr_api.db.warehouse import QueryError
from vdr_api.db.warehouse import affected_rows
from vdr_api.errors import InputValidationError

DEFAULT_TAG_COLOR = "#10b981"


def _raise_if_duplicate(err: QueryError, name: str) -> None:
    if isinstance(err.__cause__, asyncpg.UniqueViolationError):
        raise InputValidationError("Tag name already exists", extra={"name": name}) from err


class TagRepository:
    """Tag repository."""

    def __init__(self, db):
        self.db = db

    async def list(self) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetch("SELECT * FROM tags ORDER BY name")

    async def create(self, name: str, color: Optional[str], created_by: str) -> Dict[str, Any]:
        """
        Create a tag.

        Raises:
            InputValidationError: A tag with this name already exists
        """
        try:
            async with self.db.acquire() as conn:
                return await conn.fetchrow(
                    """
                    INSERT INTO tags (id, name, color, created_by, created_at)
                    VALUES ($1, $2, $3, $4, NOW())
                    RETURNING *
                    """,
                    uuid4(),
                    name,
                    color or DEFAULT_TAG_COLOR,
                    created_by,
                )
        except QueryError as e:
            _raise_if_duplicate(e, name)
            raise

    async def update(self, tag_id: UUID, name: Optional[str], color: Optional[str]) -> Optional[Dict[str, Any]]:
        """Rename and/or recolor a tag. Returns None if the tag does not exist."""
        try:
            async with self.db.acquire() as conn:
                return await conn.fetchrow(
                    """
                    UPDATE tags SET name = COALESCE($2, name), color = COALESCE($3, color)
                    WHERE id = $1
                    RETURNING *
                    """,
                    tag_id,
                    name,
                    color,
                )
        except QueryError as e:
            _raise_if_duplicate(e, name or "")
            raise

    async def delete(self, tag_id: UUID) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM tags WHERE id = $1", tag_id)
        return affected_rows(result) == 1
