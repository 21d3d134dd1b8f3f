"""
User Repository

Repository for data room user accounts.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

from vdr_api.db.warehouse import affected_rows

PUBLIC_COLUMNS = "id, name, email, role, created_at"


class UserRepository:
    """User account repository."""

    def __init__(self, db):
        self.db = db

    async def create(self, name: str, email: str, password_hash: str, role: str) -> UUID:
        """Create a user account."""
        user_id = uuid4()
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO users (id, name, email, password_hash, role, created_at)
                VALUES ($1, $2, $3, $4, $5, NOW())
                """,
                user_id,
                name,
                email,
                password_hash,
                role,
            )
        return user_id

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user including the password hash."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)

    async def exists(self, email: str) -> bool:
        async with self.db.acquire() as conn:
            return await conn.fetchval("SELECT EXISTS (SELECT 1 FROM users WHERE email = $1)", email)

    async def list(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        """List users without password hashes, optionally filtered by role."""
        async with self.db.acquire() as conn:
            if role:
                return await conn.fetch(
                    f"SELECT {PUBLIC_COLUMNS} FROM users WHERE role = $1 ORDER BY created_at DESC",
                    role,
                )
            return await conn.fetch(f"SELECT {PUBLIC_COLUMNS} FROM users ORDER BY created_at DESC")

    async def list_admins(self) -> List[Dict[str, Any]]:
        """List admin users (email, name)."""
        async with self.db.acquire() as conn:
            return await conn.fetch("SELECT email, name FROM users WHERE role = 'admin' ORDER BY email")

    async def update(self, email: str, name: Optional[str] = None, role: Optional[str] = None) -> bool:
        """Update name and/or role; unchanged fields keep their value."""
        async with self.db.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET name = COALESCE($2, name), role = COALESCE($3, role)
                WHERE email = $1
                """,
                email,
                name,
                role,
            )
        return affected_rows(result) == 1

    async def update_password(self, email: str, password_hash: str) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("UPDATE users SET password_hash = $2 WHERE email = $1", email, password_hash)
        return affected_rows(result) == 1

    async def change_email(self, old_email: str, new_email: str) -> None:
        """Move an account and its personal records to a new email."""
        async with self.db.transaction() as conn:
            await conn.execute("UPDATE users SET email = $2 WHERE email = $1", old_email, new_email)
            await conn.execute("UPDATE profiles SET user_email = $2 WHERE user_email = $1", old_email, new_email)
            await conn.execute("UPDATE favorites SET user_email = $2 WHERE user_email = $1", old_email, new_email)
            await conn.execute("UPDATE notifications SET user_email = $2 WHERE user_email = $1", old_email, new_email)
            await conn.execute("UPDATE access_requests SET user_email = $2 WHERE user_email = $1", old_email, new_email)
            await conn.execute("UPDATE user_storage SET user_email = $2 WHERE user_email = $1", old_email, new_email)
            await conn.execute("UPDATE storage_files SET user_email = $2 WHERE user_email = $1", old_email, new_email)

    async def delete(self, email: str) -> bool:
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE email = $1", email)
        return affected_rows(result) == 1

    async def count(self) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM users")
