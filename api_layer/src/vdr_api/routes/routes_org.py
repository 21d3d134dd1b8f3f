"""
Organization Routes

Organization self-registration, login and plan purchase. Orders and payment
verification identify the organization in the body because an organization
without an active plan has no token yet.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from loguru import logger

from vdr_api.auth.passwords import MIN_PASSWORD_LENGTH
from vdr_api.auth.passwords import hash_password
from vdr_api.auth.passwords import verify_password
from vdr_api.auth.tokens import Principal
from vdr_api.auth.tokens import TokenService
from vdr_api.billing.plans import PLAN_CURRENCY
from vdr_api.billing.plans import order_receipt
from vdr_api.billing.plans import plan_end
from vdr_api.billing.plans import to_minor_units
from vdr_api.billing.razorpay_client import RazorpayClient
from vdr_api.billing.razorpay_client import verify_signature
from vdr_api.db.repository_org import OrganizationRepository
from vdr_api.dependencies import get_current_org
from vdr_api.dependencies import get_org_repository
from vdr_api.dependencies import get_razorpay
from vdr_api.dependencies import get_settings
from vdr_api.dependencies import get_token_service
from vdr_api.enums import PlanType
from vdr_api.enums import TokenType
from vdr_api.errors import AuthError
from vdr_api.errors import ConflictError
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.errors import UpstreamServiceError
from vdr_api.schemas.schemas import CreateOrderBody
from vdr_api.schemas.schemas import LoginBody
from vdr_api.schemas.schemas import OrgRegisterBody
from vdr_api.schemas.schemas import VerifyPaymentBody
from vdr_api.settings import Settings

ROUTER_ORG = APIRouter(tags=["Organizations"], prefix="/org")

ORG_ROLE = "organization"


def organization_view(org: dict) -> dict:
    """Public fields of an organization row."""
    return {
        "id": org["id"],
        "organizationName": org["name"],
        "email": org["email"],
        "hasActivePlan": org["has_active_plan"],
        "planType": org.get("plan_type"),
        "planStartDate": org.get("plan_start"),
        "planEndDate": org.get("plan_end"),
    }


@ROUTER_ORG.post("/register", status_code=status.HTTP_201_CREATED)
async def register_organization(
    body: OrgRegisterBody,
    orgs: OrganizationRepository = Depends(get_org_repository),
):
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if await orgs.get_by_email(body.email) is not None:
        raise ConflictError("An organization with this email already exists")

    org = await orgs.create(body.organization_name.strip(), body.email, hash_password(body.password))
    logger.info("Organization registered", org_id=str(org["id"]), email=body.email)
    return {"message": "Organization registered successfully", "organization": organization_view(org)}


@ROUTER_ORG.post("/login")
async def login_organization(
    body: LoginBody,
    settings: Settings = Depends(get_settings),
    orgs: OrganizationRepository = Depends(get_org_repository),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Log an organization in.

    Organizations without a current plan get ``requiresPlan: true`` and no token;
    a plan found expired here is switched off.
    """
    org = await orgs.get_by_email(body.email.strip().lower())
    if org is None or not verify_password(body.password, org["password_hash"]):
        raise AuthError("Invalid email or password")

    plan_status = "not_purchased"
    if org["has_active_plan"] and org["plan_end"] is not None:
        if datetime.now(timezone.utc) > org["plan_end"]:
            plan_status = "expired"
            await orgs.deactivate_plan(org["id"])
            org["has_active_plan"] = False
            logger.info("Organization plan expired", org_id=str(org["id"]), plan_end=str(org["plan_end"]))
        else:
            plan_status = "active"

    if plan_status != "active":
        return {
            "requiresPlan": True,
            "planStatus": plan_status,
            "organization": organization_view(org),
            "message": (
                "Plan expired. Please purchase again."
                if plan_status == "expired"
                else "Please purchase a plan to continue."
            ),
        }

    principal = Principal(
        email=org["email"],
        role=ORG_ROLE,
        name=org["name"],
        type=TokenType.ORGANIZATION,
        org_id=str(org["id"]),
    )
    token = tokens.issue(principal, timedelta(hours=settings.org_jwt_expiry_hours))
    logger.success("Organization logged in", org_id=principal.org_id)
    return {"message": "Login successful", "token": token, "organization": organization_view(org)}


@ROUTER_ORG.post("/payment/create-order")
async def create_payment_order(
    body: CreateOrderBody,
    orgs: OrganizationRepository = Depends(get_org_repository),
    razorpay: RazorpayClient = Depends(get_razorpay),
):
    """Open a gateway order for a plan and record it as a pending payment."""
    org = await orgs.get(body.organization_id)
    if org is None:
        raise NotFoundError("Organization not found")

    organization_id = str(body.organization_id)
    amount = to_minor_units(body.amount)
    order = await razorpay.create_order(
        amount=amount,
        currency=PLAN_CURRENCY,
        receipt=order_receipt(organization_id, datetime.now(timezone.utc)),
        notes={"organizationId": organization_id, "planType": body.plan_type.value},
    )
    await orgs.create_payment(body.organization_id, order["id"], amount, PLAN_CURRENCY, body.plan_type.value)
    return {
        "orderId": order["id"],
        "amount": order.get("amount", amount),
        "currency": order.get("currency", PLAN_CURRENCY),
        "keyId": razorpay.key_id,
    }


@ROUTER_ORG.post("/payment/verify")
async def verify_payment(
    body: VerifyPaymentBody,
    orgs: OrganizationRepository = Depends(get_org_repository),
    razorpay: RazorpayClient = Depends(get_razorpay),
):
    """
    Check the checkout signature and activate the plan.

    A bad signature marks the pending payment failed.
    """
    if not razorpay.key_secret:
        raise UpstreamServiceError("Payment gateway not configured")

    if not verify_signature(body.order_id, body.payment_id, body.signature, razorpay.key_secret):
        await orgs.mark_payment_failed(body.order_id, body.payment_id)
        logger.warning("Payment signature mismatch", order_id=body.order_id, org_id=str(body.organization_id))
        raise InputValidationError("Invalid payment signature")

    payment = await orgs.get_payment_by_order(body.organization_id, body.order_id)
    if payment is None:
        raise NotFoundError("Payment record not found")

    plan_type = PlanType(payment["plan_type"])
    start = datetime.now(timezone.utc)
    org = await orgs.complete_payment(
        body.organization_id,
        body.order_id,
        body.payment_id,
        plan_type.value,
        start,
        plan_end(plan_type, start),
    )
    if org is None:
        raise NotFoundError("Organization not found")

    logger.success(
        "Organization plan activated",
        org_id=str(body.organization_id),
        plan_type=plan_type.value,
        order_id=body.order_id,
    )
    return {"message": "Payment verified successfully. Plan activated!", "organization": organization_view(org)}


@ROUTER_ORG.get("/me")
async def current_organization(
    principal: Principal = Depends(get_current_org),
    orgs: OrganizationRepository = Depends(get_org_repository),
):
    org = await orgs.get(UUID(principal.org_id))
    if org is None:
        raise NotFoundError("Organization not found")
    return {"organization": organization_view(org)}
