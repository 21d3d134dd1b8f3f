"""
Super Admin Routes

Platform console: payment gateway records, refunds and revenue figures.
Credentials come from settings; there is no super admin table.
"""

import hmac
from datetime import timedelta
from enum import Enum
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from loguru import logger

from vdr_api.auth.tokens import Principal
from vdr_api.auth.tokens import TokenService
from vdr_api.billing.razorpay_client import RazorpayClient
from vdr_api.db.repository_org import OrganizationRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.dependencies import get_org_repository
from vdr_api.dependencies import get_razorpay
from vdr_api.dependencies import get_settings
from vdr_api.dependencies import get_token_service
from vdr_api.dependencies import get_user_repository
from vdr_api.dependencies import require_superadmin
from vdr_api.enums import TokenType
from vdr_api.errors import AuthError
from vdr_api.schemas.schemas import LoginBody
from vdr_api.schemas.schemas import RefundBody
from vdr_api.settings import Settings

ROUTER_SUPERADMIN = APIRouter(tags=["Super Admin"], prefix="/superadmin")

SUPERADMIN_ROLE = "superadmin"
SUPERADMIN_TOKEN_TTL = timedelta(hours=24)
MAX_GATEWAY_PAGE = 100


class RevenuePeriod(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


# date_trunc unit and look-back window per period
REVENUE_WINDOWS = {
    RevenuePeriod.DAILY: ("day", 30),
    RevenuePeriod.MONTHLY: ("month", 365),
}


def _same_secret(given: str, expected: Optional[str]) -> bool:
    return bool(expected) and hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


@ROUTER_SUPERADMIN.post("/login")
async def superadmin_login(
    body: LoginBody,
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
):
    expected_email = (settings.superadmin_email or "").strip().lower()
    if not _same_secret(body.email.strip().lower(), expected_email) or not _same_secret(
        body.password, settings.superadmin_password
    ):
        logger.warning("Super admin login rejected", email=body.email)
        raise AuthError("Invalid credentials")

    principal = Principal(
        email=expected_email,
        role=SUPERADMIN_ROLE,
        name="Super Admin",
        type=TokenType.SUPERADMIN,
    )
    token = tokens.issue(principal, SUPERADMIN_TOKEN_TTL)
    logger.success("Super admin logged in", email=expected_email)
    return {
        "message": "Login successful",
        "token": token,
        "admin": {"email": expected_email, "name": principal.name, "role": SUPERADMIN_ROLE},
    }


@ROUTER_SUPERADMIN.get("/payments")
async def list_payments(
    skip: int = Query(0, ge=0),
    count: int = Query(MAX_GATEWAY_PAGE, ge=1),
    payment_status: Optional[str] = Query(None, alias="status"),
    admin: Principal = Depends(require_superadmin),
    razorpay: RazorpayClient = Depends(get_razorpay),
):
    """Payments as recorded by the gateway, optionally filtered by gateway status."""
    payments = await razorpay.list_payments(count=min(count, MAX_GATEWAY_PAGE), skip=skip)
    items = payments.get("items", [])
    if payment_status and payment_status != "all":
        items = [p for p in items if p.get("status") == payment_status]
    return {"entity": "collection", "count": len(items), "items": items}


@ROUTER_SUPERADMIN.get("/payments/{payment_id}")
async def get_payment(
    payment_id: str,
    admin: Principal = Depends(require_superadmin),
    razorpay: RazorpayClient = Depends(get_razorpay),
):
    return await razorpay.get_payment(payment_id)


@ROUTER_SUPERADMIN.post("/payments/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    body: Optional[RefundBody] = None,
    admin: Principal = Depends(require_superadmin),
    razorpay: RazorpayClient = Depends(get_razorpay),
    orgs: OrganizationRepository = Depends(get_org_repository),
):
    """Refund a payment (fully unless ``amount`` in paise is given) and return the updated gateway record."""
    amount = body.amount if body else None
    await razorpay.refund(payment_id, amount)
    await orgs.mark_refunded(payment_id)
    logger.info("Refund issued", payment_id=payment_id, amount=amount, refunded_by=admin.email)
    return await razorpay.get_payment(payment_id)


@ROUTER_SUPERADMIN.get("/stats")
async def dashboard_stats(
    admin: Principal = Depends(require_superadmin),
    users: UserRepository = Depends(get_user_repository),
    orgs: OrganizationRepository = Depends(get_org_repository),
):
    payments = await orgs.payment_stats()
    return {
        "totalUsers": await users.count(),
        "totalOrganizations": await orgs.count(),
        "totalRevenue": payments["revenue"],
        "successfulPayments": payments["captured"],
        "failedPayments": payments["failed"],
        "pendingPayments": payments["pending"],
    }


@ROUTER_SUPERADMIN.get("/revenue")
async def revenue(
    period: RevenuePeriod = Query(RevenuePeriod.DAILY),
    admin: Principal = Depends(require_superadmin),
    orgs: OrganizationRepository = Depends(get_org_repository),
):
    """Captured revenue (paise) per day over 30 days, or per month over a year."""
    bucket, days = REVENUE_WINDOWS[period]
    rows = await orgs.revenue_by_period(bucket, days)
    label = "%Y-%m-%d" if period == RevenuePeriod.DAILY else "%Y-%m"
    return [{"date": row["period"].strftime(label), "amount": row["revenue"], "payments": row["payments"]} for row in rows]
