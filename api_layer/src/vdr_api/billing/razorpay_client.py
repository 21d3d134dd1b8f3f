"""Razorpay REST client (orders, payments, refunds) and payment signature checks."""

import hashlib
import hmac
from typing import Any
from typing import Dict
from typing import Optional

import httpx
from loguru import logger

from vdr_api.errors import UpstreamServiceError
from vdr_api.settings import Settings

GATEWAY_TIMEOUT = 30.0


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Check a checkout signature: hex HMAC-SHA256 of ``"{order_id}|{payment_id}"`` keyed with the key secret.

    Parameters
    ----------
    order_id : str
        Gateway order id
    payment_id : str
        Gateway payment id
    signature : str
        Signature returned to the browser by checkout
    secret : str
        Razorpay key secret

    Returns
    -------
    bool
        True if the signature matches
    """
    expected = hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature or "")


class RazorpayClient:
    """Thin async client over the Razorpay v1 API using basic auth (key id / key secret)."""

    def __init__(self, key_id: Optional[str], key_secret: Optional[str], base_url: str = "https://api.razorpay.com/v1"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayClient":
        return cls(settings.razorpay_key_id, settings.razorpay_key_secret, settings.razorpay_api_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self.is_configured:
            raise UpstreamServiceError("Payment gateway not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self.key_secret),
                timeout=GATEWAY_TIMEOUT,
            ) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:500]
            logger.error(
                "Payment gateway rejected request",
                method=method,
                path=path,
                status_code=e.response.status_code,
                detail=detail,
            )
            raise UpstreamServiceError(
                f"Payment gateway error ({e.response.status_code})",
                extra={"gateway_status": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Payment gateway unreachable: {e}", method=method, path=path)
            raise UpstreamServiceError("Payment gateway unreachable") from e

        return response.json()

    async def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        """Create an order; ``amount`` is in minor units (paise)."""
        order = await self._request(
            "POST",
            "/orders",
            json={"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
        )
        logger.info("Payment order created", order_id=order.get("id"), amount=amount, currency=currency)
        return order

    async def list_payments(self, count: int = 100, skip: int = 0) -> Dict[str, Any]:
        return await self._request("GET", "/payments", params={"count": count, "skip": skip})

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    async def refund(self, payment_id: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """Refund a captured payment, fully unless ``amount`` (minor units) is given."""
        body = {"amount": amount} if amount else {}
        refund = await self._request("POST", f"/payments/{payment_id}/refund", json=body)
        logger.info("Payment refunded", payment_id=payment_id, refund_id=refund.get("id"), amount=refund.get("amount"))
        return refund
