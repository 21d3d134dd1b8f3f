"""Test suite for organization and super admin endpoints."""

import hashlib
import hmac
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from uuid import uuid4

import pytest
from fastapi import status

from tests.consts import API_BASE
from tests.fixtures.app_fixtures import SUPERADMIN_EMAIL
from tests.fixtures.app_fixtures import SUPERADMIN_PASSWORD
from vdr_api.auth.passwords import hash_password


@pytest.fixture
def org_row():
    """Organization with an active plan and password ``orgpass``."""
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "name": "Acme Capital",
        "email": "org@example.com",
        "password_hash": hash_password("orgpass"),
        "has_active_plan": True,
        "plan_type": "monthly",
        "plan_start": now - timedelta(days=5),
        "plan_end": now + timedelta(days=25),
    }


@pytest.fixture
def superadmin_headers(make_token):
    token = make_token(SUPERADMIN_EMAIL, role="superadmin", type="superadmin")
    return {"Authorization": f"Bearer {token}"}


class TestOrganizationRegistration:
    def test_register(self, unauthenticated_client, repos, org_row):
        repos.orgs.get_by_email.return_value = None
        repos.orgs.create.return_value = {**org_row, "has_active_plan": False, "plan_end": None}

        response = unauthenticated_client.post(
            f"{API_BASE}/org/register",
            json={"organizationName": " Acme Capital ", "email": "Org@Example.com", "password": "orgpass"},
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["organization"]["organizationName"] == "Acme Capital"
        assert repos.orgs.create.await_args.args[:2] == ("Acme Capital", "org@example.com")

    def test_register_duplicate(self, unauthenticated_client, repos, org_row):
        repos.orgs.get_by_email.return_value = org_row

        response = unauthenticated_client.post(
            f"{API_BASE}/org/register",
            json={"organizationName": "Acme", "email": "org@example.com", "password": "orgpass"},
        )

        assert response.status_code == status.HTTP_409_CONFLICT


class TestOrganizationLogin:
    """Tests for POST /org/login plan gating."""

    def _login(self, client, password="orgpass"):
        return client.post(f"{API_BASE}/org/login", json={"email": "org@example.com", "password": password})

    def test_active_plan_gets_token(self, unauthenticated_client, repos, org_row, token_service):
        repos.orgs.get_by_email.return_value = org_row

        response = self._login(unauthenticated_client)

        assert response.status_code == status.HTTP_200_OK
        principal = token_service.decode(response.json()["token"])
        assert principal.type.value == "organization"
        assert principal.org_id == str(org_row["id"])

    def test_wrong_password(self, unauthenticated_client, repos, org_row):
        repos.orgs.get_by_email.return_value = org_row

        response = self._login(unauthenticated_client, password="nope")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Invalid email or password"

    def test_expired_plan_is_switched_off(self, unauthenticated_client, repos, org_row):
        org_row["plan_end"] = datetime.now(timezone.utc) - timedelta(days=1)
        repos.orgs.get_by_email.return_value = org_row

        response = self._login(unauthenticated_client)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["requiresPlan"] is True
        assert data["planStatus"] == "expired"
        assert "token" not in data
        repos.orgs.deactivate_plan.assert_awaited_once_with(org_row["id"])

    def test_no_plan(self, unauthenticated_client, repos, org_row):
        org_row.update(has_active_plan=False, plan_end=None)
        repos.orgs.get_by_email.return_value = org_row

        response = self._login(unauthenticated_client)

        assert response.json()["planStatus"] == "not_purchased"
        repos.orgs.deactivate_plan.assert_not_called()


class TestPlanPayment:
    """Tests for plan orders and payment verification."""

    def test_create_order(self, unauthenticated_client, repos, mock_razorpay, org_row):
        repos.orgs.get.return_value = org_row

        response = unauthenticated_client.post(
            f"{API_BASE}/org/payment/create-order",
            json={"organizationId": str(org_row["id"]), "planType": "monthly", "amount": 499},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"orderId": "order_123", "amount": 49900, "currency": "INR", "keyId": "rzp_test_key"}
        assert mock_razorpay.create_order.await_args.kwargs["amount"] == 49900
        repos.orgs.create_payment.assert_awaited_once_with(org_row["id"], "order_123", 49900, "INR", "monthly")

    def test_create_order_unknown_org(self, unauthenticated_client, repos, mock_razorpay):
        repos.orgs.get.return_value = None

        response = unauthenticated_client.post(
            f"{API_BASE}/org/payment/create-order",
            json={"organizationId": str(uuid4()), "planType": "yearly", "amount": 4999},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        mock_razorpay.create_order.assert_not_called()

    def _verify_body(self, org_id, signature):
        return {
            "organizationId": str(org_id),
            "orderId": "order_123",
            "paymentId": "pay_123",
            "signature": signature,
        }

    def test_verify_valid_signature(self, unauthenticated_client, repos, mock_razorpay, org_row):
        signature = hmac.new(b"rzp_test_secret", b"order_123|pay_123", hashlib.sha256).hexdigest()
        repos.orgs.get_payment_by_order.return_value = {"plan_type": "quarterly"}
        repos.orgs.complete_payment.return_value = org_row

        response = unauthenticated_client.post(
            f"{API_BASE}/org/payment/verify", json=self._verify_body(org_row["id"], signature)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Payment verified successfully. Plan activated!"
        args = repos.orgs.complete_payment.await_args.args
        assert args[3] == "quarterly"
        assert args[5] > args[4]

    def test_verify_bad_signature(self, unauthenticated_client, repos, mock_razorpay, org_row):
        response = unauthenticated_client.post(
            f"{API_BASE}/org/payment/verify", json=self._verify_body(org_row["id"], "forged")
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Invalid payment signature"
        repos.orgs.mark_payment_failed.assert_awaited_once_with("order_123", "pay_123")
        repos.orgs.complete_payment.assert_not_called()


class TestCurrentOrganization:
    def test_requires_org_token(self, client, repos):
        response = client.get(f"{API_BASE}/org/me")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_me(self, unauthenticated_client, repos, org_row, make_token):
        repos.orgs.get.return_value = org_row
        token = make_token("org@example.com", role="organization", type="organization", org_id=str(org_row["id"]))

        response = unauthenticated_client.get(f"{API_BASE}/org/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["organization"]["email"] == "org@example.com"


class TestSuperAdmin:
    """Tests for the super admin console endpoints."""

    def test_login(self, unauthenticated_client, token_service):
        response = unauthenticated_client.post(
            f"{API_BASE}/superadmin/login",
            json={"email": SUPERADMIN_EMAIL.upper(), "password": SUPERADMIN_PASSWORD},
        )

        assert response.status_code == status.HTTP_200_OK
        assert token_service.decode(response.json()["token"]).type.value == "superadmin"

    def test_login_wrong_password(self, unauthenticated_client):
        response = unauthenticated_client.post(
            f"{API_BASE}/superadmin/login", json={"email": SUPERADMIN_EMAIL, "password": "guess"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Invalid credentials"

    def test_admin_token_is_not_superadmin(self, admin_client, repos):
        response = admin_client.get(f"{API_BASE}/superadmin/stats")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_stats(self, unauthenticated_client, repos, superadmin_headers):
        repos.users.count.return_value = 12
        repos.orgs.count.return_value = 3
        repos.orgs.payment_stats.return_value = {"revenue": 149700, "captured": 3, "failed": 1, "pending": 2}

        response = unauthenticated_client.get(f"{API_BASE}/superadmin/stats", headers=superadmin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "totalUsers": 12,
            "totalOrganizations": 3,
            "totalRevenue": 149700,
            "successfulPayments": 3,
            "failedPayments": 1,
            "pendingPayments": 2,
        }

    def test_monthly_revenue(self, unauthenticated_client, repos, superadmin_headers):
        repos.orgs.revenue_by_period.return_value = [
            {"period": datetime(2026, 9, 1, tzinfo=timezone.utc), "revenue": 49900, "payments": 1},
        ]

        response = unauthenticated_client.get(
            f"{API_BASE}/superadmin/revenue", params={"period": "monthly"}, headers=superadmin_headers
        )

        assert response.json() == [{"date": "2026-09", "amount": 49900, "payments": 1}]
        repos.orgs.revenue_by_period.assert_awaited_once_with("month", 365)

    def test_payments_filtered_by_status(self, unauthenticated_client, mock_razorpay, superadmin_headers):
        mock_razorpay.list_payments.return_value = {
            "items": [{"id": "pay_1", "status": "captured"}, {"id": "pay_2", "status": "failed"}]
        }

        response = unauthenticated_client.get(
            f"{API_BASE}/superadmin/payments",
            params={"status": "captured", "count": 500},
            headers=superadmin_headers,
        )

        assert response.json() == {"entity": "collection", "count": 1, "items": [{"id": "pay_1", "status": "captured"}]}
        mock_razorpay.list_payments.assert_awaited_once_with(count=100, skip=0)

    def test_refund(self, unauthenticated_client, repos, mock_razorpay, superadmin_headers):
        response = unauthenticated_client.post(
            f"{API_BASE}/superadmin/payments/pay_123/refund", json={"amount": 100}, headers=superadmin_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "refunded"
        mock_razorpay.refund.assert_awaited_once_with("pay_123", 100)
        repos.orgs.mark_refunded.assert_awaited_once_with("pay_123")
