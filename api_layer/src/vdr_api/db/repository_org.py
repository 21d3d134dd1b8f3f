"""
Organization Repository

Organization accounts, their plan state and plan payments.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4


class OrganizationRepository:
    """Organization and payment repository."""

    def __init__(self, db):
        self.db = db

    async def create(self, name: str, email: str, password_hash: str) -> Dict[str, Any]:
        """Create an organization without an active plan."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                INSERT INTO organizations (id, name, email, password_hash, has_active_plan, created_at)
                VALUES ($1, $2, $3, $4, FALSE, NOW())
                RETURNING id, name, email, has_active_plan, created_at
                """,
                uuid4(),
                name,
                email,
                password_hash,
            )

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM organizations WHERE email = $1", email)

    async def get(self, org_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM organizations WHERE id = $1", org_id)

    async def deactivate_plan(self, org_id: UUID) -> None:
        async with self.db.acquire() as conn:
            await conn.execute("UPDATE organizations SET has_active_plan = FALSE WHERE id = $1", org_id)

    async def count(self) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM organizations")

    # ── Payments ─────────────────────────────────────────────────────────────

    async def create_payment(
        self,
        org_id: UUID,
        order_id: str,
        amount: int,
        currency: str,
        plan_type: str,
    ) -> UUID:
        """Record a pending payment for a gateway order (amount in minor units)."""
        payment_id = uuid4()
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO payments
                    (id, organization_id, order_id, amount, currency, plan_type, status, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, 'pending', NOW(), NOW())
                """,
                payment_id,
                org_id,
                order_id,
                amount,
                currency,
                plan_type,
            )
        return payment_id

    async def get_payment_by_order(self, org_id: UUID, order_id: str) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                "SELECT * FROM payments WHERE order_id = $1 AND organization_id = $2",
                order_id,
                org_id,
            )

    async def mark_payment_failed(self, order_id: str, gateway_payment_id: Optional[str]) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                UPDATE payments SET status = 'failed', payment_id = $2, updated_at = NOW()
                WHERE order_id = $1 AND status = 'pending'
                """,
                order_id,
                gateway_payment_id,
            )

    async def complete_payment(
        self,
        org_id: UUID,
        order_id: str,
        gateway_payment_id: str,
        plan_type: str,
        plan_start: datetime,
        plan_end: datetime,
    ) -> Dict[str, Any]:
        """Mark the payment successful and activate the plan in one transaction; returns the organization."""
        async with self.db.transaction() as conn:
            await conn.execute(
                """
                UPDATE payments SET status = 'success', payment_id = $2, updated_at = NOW()
                WHERE order_id = $1
                """,
                order_id,
                gateway_payment_id,
            )
            return await conn.fetchrow(
                """
                UPDATE organizations
                SET has_active_plan = TRUE, plan_type = $2, plan_start = $3, plan_end = $4
                WHERE id = $1
                RETURNING id, name, email, has_active_plan, plan_type, plan_start, plan_end
                """,
                org_id,
                plan_type,
                plan_start,
                plan_end,
            )

    async def mark_refunded(self, gateway_payment_id: str) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                "UPDATE payments SET status = 'refunded', updated_at = NOW() WHERE payment_id = $1",
                gateway_payment_id,
            )

    async def payment_stats(self) -> Dict[str, Any]:
        """Counts per status and captured revenue (minor units)."""
        async with self.db.acquire() as conn:
            return await conn.fetchrow(
                """
                SELECT COUNT(*) FILTER (WHERE status = 'success') AS captured,
                       COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                       COUNT(*) FILTER (WHERE status = 'pending') AS pending,
                       COALESCE(SUM(amount) FILTER (WHERE status = 'success'), 0) AS revenue
                FROM payments
                """
            )

    async def revenue_by_period(self, bucket: str, days: int) -> List[Dict[str, Any]]:
        """
        Captured revenue grouped by day or month.

        Args:
            bucket: ``day`` or ``month`` (date_trunc unit)
            days: How far back to look
        """
        async with self.db.acquire() as conn:
            return await conn.fetch(
                """
                SELECT date_trunc($1, created_at) AS period,
                       COALESCE(SUM(amount), 0) AS revenue,
                       COUNT(*) AS payments
                FROM payments
                WHERE status = 'success' AND created_at >= NOW() - make_interval(days => $2)
                GROUP BY period
                ORDER BY period
                """,
                bucket,
                days,
            )
