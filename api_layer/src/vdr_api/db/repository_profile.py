"""
Profile Repository

Per-user profile details shown on the settings page.
"""

from datetime import date
from typing import Any
from typing import Dict
from typing import Optional


class ProfileRepository:
    """Profile repository."""

    def __init__(self, db):
        self.db = db

    async def get(self, user_email: str) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM profiles WHERE user_email = $1", user_email)

    async def upsert(
        self,
        user_email: str,
        company_name: str,
        first_name: str,
        last_name: str,
        address: str,
        contact_no: str,
        expiry_date: Optional[date],
    ) -> None:
        """Insert or replace the editable profile fields; also renames the user account."""
        full_name = f"{first_name} {last_name}".strip()

        async with self.db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO profiles
                    (user_email, company_name, first_name, last_name, address, contact_no, expiry_date, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
                ON CONFLICT (user_email) DO UPDATE SET
                    company_name = EXCLUDED.company_name,
                    first_name = EXCLUDED.first_name,
                    last_name = EXCLUDED.last_name,
                    address = EXCLUDED.address,
                    contact_no = EXCLUDED.contact_no,
                    expiry_date = EXCLUDED.expiry_date,
                    updated_at = EXCLUDED.updated_at
                """,
                user_email,
                company_name,
                first_name,
                last_name,
                address,
                contact_no,
                expiry_date,
            )
            if full_name:
                await conn.execute("UPDATE users SET name = $2 WHERE email = $1", user_email, full_name)

    async def set_logo(self, user_email: str, logo_url: str) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO profiles (user_email, logo_url, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (user_email) DO UPDATE SET logo_url = EXCLUDED.logo_url, updated_at = NOW()
                """,
                user_email,
                logo_url,
            )
