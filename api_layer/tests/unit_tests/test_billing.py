"""Tests for plan pricing helpers and the payment gateway client."""

import hashlib
import hmac
from datetime import datetime
from datetime import timezone
from unittest.mock import patch

import httpx
import pytest

from vdr_api.billing.plans import add_months
from vdr_api.billing.plans import order_receipt
from vdr_api.billing.plans import plan_end
from vdr_api.billing.plans import to_minor_units
from vdr_api.billing.razorpay_client import RazorpayClient
from vdr_api.billing.razorpay_client import verify_signature
from vdr_api.enums import PlanType
from vdr_api.errors import UpstreamServiceError

SECRET = "rzp_test_secret"


def _sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class TestVerifySignature:
    """Tests for checkout signature verification."""

    def test_valid_signature(self):
        assert verify_signature("order_1", "pay_1", _sign("order_1", "pay_1"), SECRET)

    def test_signature_for_other_payment(self):
        assert not verify_signature("order_1", "pay_2", _sign("order_1", "pay_1"), SECRET)

    def test_signature_with_other_secret(self):
        assert not verify_signature("order_1", "pay_1", _sign("order_1", "pay_1", "other"), SECRET)

    def test_empty_signature(self):
        assert not verify_signature("order_1", "pay_1", "", SECRET)


class TestPlans:
    """Tests for plan amounts, receipts and end dates."""

    @pytest.mark.parametrize(
        "rupees, paise",
        [(499, 49900), (499.99, 49999), (0.005, 1), (1234.565, 123457)],
    )
    def test_to_minor_units(self, rupees, paise):
        assert to_minor_units(rupees) == paise

    def test_order_receipt_fits_gateway_limit(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        receipt = order_receipt("0f8fad5b-d9cb-469f-a165-70867728950e", now)

        assert receipt.startswith("org_0f8fad5b_")
        assert receipt == f"org_0f8fad5b_{str(int(now.timestamp() * 1000))[-10:]}"
        assert len(receipt) <= 40

    def test_add_months_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    def test_add_months_crosses_year(self):
        assert add_months(datetime(2026, 11, 15, 9, 30), 3) == datetime(2027, 2, 15, 9, 30)

    @pytest.mark.parametrize(
        "plan_type, expected",
        [
            (PlanType.MONTHLY, datetime(2026, 2, 10)),
            (PlanType.QUARTERLY, datetime(2026, 4, 10)),
            (PlanType.YEARLY, datetime(2027, 1, 10)),
        ],
    )
    def test_plan_end(self, plan_type, expected):
        assert plan_end(plan_type, datetime(2026, 1, 10)) == expected


class TestRazorpayClient:
    """Tests for the gateway client without network access."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = RazorpayClient(None, None)

        assert not client.is_configured
        with pytest.raises(UpstreamServiceError, match="not configured"):
            await client.list_payments()

    @pytest.mark.asyncio
    async def test_gateway_error_status(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "bad amount"}})

        client = RazorpayClient("rzp_test_key", SECRET)
        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        with patch(
            "vdr_api.billing.razorpay_client.httpx.AsyncClient",
            side_effect=lambda **kwargs: real_client(transport=transport, **kwargs),
        ):
            with pytest.raises(UpstreamServiceError) as exc_info:
                await client.create_order(100, "INR", "r1", {})

        assert exc_info.value.extra == {"gateway_status": 400}

    @pytest.mark.asyncio
    async def test_create_order(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"id": "order_1", "amount": 100, "currency": "INR"})

        client = RazorpayClient("rzp_test_key", SECRET)
        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        with patch(
            "vdr_api.billing.razorpay_client.httpx.AsyncClient",
            side_effect=lambda **kwargs: real_client(transport=transport, **kwargs),
        ):
            order = await client.create_order(100, "INR", "r1", {"plan": "monthly"})

        assert order["id"] == "order_1"
        assert seen["path"] == "/v1/orders"
        assert seen["auth"].startswith("Basic ")
