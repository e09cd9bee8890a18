"""Midtrans payment gateway client

Overview
--------
Thin async HTTP client for the two Midtrans calls the payment flow needs:

- ``create_transaction``: Snap ``POST /snap/v1/transactions`` returning the
  checkout token and redirect URL
- ``get_status``: core API ``GET /v2/{order_id}/status``

Notification signatures are checked with ``verify_signature`` and gateway
statuses are mapped to payment statuses by ``map_transaction_status``.

Authentication is HTTP Basic with the server key as user name and an empty
password. HTTP failures are raised as ``PaymentGatewayError``.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import PaymentGatewayError
from app.models.payment import PaymentStatus


logger = logging.getLogger(__name__)

COMPLETED_STATUSES = {"settlement", "capture"}
FAILED_STATUSES = {"deny", "expire", "cancel", "failure"}


def map_transaction_status(transaction_status: Optional[str]) -> str:
    """Payment status for a Midtrans ``transaction_status``."""
    value = (transaction_status or "").lower()
    if value in COMPLETED_STATUSES:
        return PaymentStatus.COMPLETED.value
    if value in FAILED_STATUSES:
        return PaymentStatus.FAILED.value
    return PaymentStatus.PENDING.value


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


class MidtransClient:
    """Async client for Midtrans Snap and core status APIs."""

    def __init__(
        self,
        server_key: str,
        *,
        is_production: bool = False,
        timeout: float = 15.0,
        finish_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Create a client.

        Args:
            server_key: Midtrans server key.
            is_production: Use production endpoints instead of the sandbox.
            timeout: Default HTTP timeout for the internal client.
            finish_url: Optional Snap ``callbacks.finish`` URL.
            client: Optional preconfigured ``httpx.AsyncClient`` to use.
        """
        self.server_key = server_key
        self.api_base = "https://api.midtrans.com" if is_production else "https://api.sandbox.midtrans.com"
        self.snap_base = "https://app.midtrans.com" if is_production else "https://app.sandbox.midtrans.com"
        self.finish_url = finish_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls) -> "MidtransClient":
        if not settings.midtrans_enabled:
            raise PaymentGatewayError("Payment gateway is not configured")
        return cls(
            settings.MIDTRANS_SERVER_KEY,
            is_production=settings.MIDTRANS_IS_PRODUCTION,
            timeout=settings.MIDTRANS_TIMEOUT_SECONDS,
            finish_url=settings.PAYMENT_FINISH_URL,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                url,
                auth=(self.server_key, ""),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error(f"Midtrans request failed: {method} {url}: {e}")
            raise PaymentGatewayError("Payment gateway is unreachable") from e

        if response.status_code >= 400:
            logger.error(f"Midtrans API error {response.status_code}: {response.text}")
            raise PaymentGatewayError(f"Payment gateway error: {response.status_code}")
        return response.json()

    async def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        item_name: str,
        customer: Dict[str, Optional[str]],
    ) -> Dict[str, Any]:
        """Create a Snap transaction.

        Args:
            order_id: Unique order id stored on the payment.
            gross_amount: Amount to charge in rupiah.
            item_name: Package title shown on the checkout page.
            customer: ``first_name``, ``email`` and optional ``phone``.

        Returns:
            ``{"token": ..., "redirect_url": ...}``
        """
        payload: Dict[str, Any] = {
            "transaction_details": {"order_id": order_id, "gross_amount": gross_amount},
            "item_details": [
                {"id": order_id, "price": gross_amount, "quantity": 1, "name": item_name[:50]}
            ],
            "customer_details": {
                "first_name": customer.get("first_name") or "",
                "email": customer.get("email") or "",
                "phone": customer.get("phone") or "",
            },
        }
        if self.finish_url:
            payload["callbacks"] = {"finish": self.finish_url}

        data = await self._request("POST", f"{self.snap_base}/snap/v1/transactions", json=payload)
        logger.info(f"Midtrans transaction created for order {order_id}")
        return {"token": data.get("token"), "redirect_url": data.get("redirect_url")}

    async def get_status(self, order_id: str) -> Dict[str, Any]:
        """Raw status document of an order."""
        return await self._request("GET", f"{self.api_base}/v2/{order_id}/status")

    def verify_signature(self, payload: Dict[str, Any]) -> bool:
        """Check the ``signature_key`` of an HTTP notification."""
        expected = notification_signature(
            str(payload.get("order_id", "")),
            str(payload.get("status_code", "")),
            str(payload.get("gross_amount", "")),
            self.server_key,
        )
        return hmac.compare_digest(expected, str(payload.get("signature_key", "")))
