"""
One-Time Code Repository

TTL key-value store for login OTPs and password reset tokens, keyed by
(purpose, email). Issuing a new code replaces the previous one; a code is
consumed by a successful check. Expired rows are swept on every issue.
"""

import secrets
from typing import Optional


class OneTimeCodeRepository:
    """One-time code store with explicit expiry."""

    def __init__(self, db):
        self.db = db

    async def issue(self, purpose: str, email: str, ttl_seconds: int, code: Optional[str] = None) -> str:
        """Store a code valid for ``ttl_seconds`` and return it (6 digits unless one is given)."""
        code = code or f"{secrets.randbelow(1_000_000):06d}"
        async with self.db.transaction() as conn:
            await conn.execute("DELETE FROM one_time_codes WHERE expires_at < NOW()")
            await conn.execute(
                """
                INSERT INTO one_time_codes (purpose, email, code, expires_at)
                VALUES ($1, $2, $3, NOW() + make_interval(secs => $4))
                ON CONFLICT (purpose, email) DO UPDATE SET code = EXCLUDED.code, expires_at = EXCLUDED.expires_at
                """,
                purpose,
                email,
                code,
                float(ttl_seconds),
            )
        return code

    async def consume(self, purpose: str, email: str, code: str) -> bool:
        """Delete and accept the code if it matches and has not expired."""
        async with self.db.acquire() as conn:
            consumed = await conn.fetchval(
                """
                DELETE FROM one_time_codes
                WHERE purpose = $1 AND email = $2 AND code = $3 AND expires_at >= NOW()
                RETURNING email
                """,
                purpose,
                email,
                code,
            )
        return consumed is not None
