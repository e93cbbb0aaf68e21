"""PayHere payment gateway adapter.

PayHere checkout for the Sri Lankan market.
Documentation: https://support.payhere.lk/api-&-mobile-sdk/checkout-api
"""

import base64
import hashlib
import hmac
import logging
from decimal import Decimal

import httpx

from hotelbook.config import Settings, settings as default_settings
from hotelbook.gateways.base import (
    CallbackResult,
    GatewayType,
    PaymentGateway,
    PaymentResult,
    PaymentSession,
)

logger = logging.getLogger(__name__)

# PayHere notify status codes
STATUS_SUCCESS = "2"
STATUS_PENDING = "0"
STATUS_CANCELED = "-1"
STATUS_FAILED = "-2"
STATUS_CHARGEDBACK = "-3"


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest().upper()


class PayHereGateway(PaymentGateway):
    """PayHere payment gateway implementation."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        settings = settings or default_settings
        self.merchant_id = settings.payhere_merchant_id
        self.merchant_secret = settings.payhere_merchant_secret
        self.app_id = settings.payhere_app_id
        self.app_secret = settings.payhere_app_secret
        self.sandbox = settings.payhere_sandbox
        self.return_url = settings.payhere_return_url
        self.cancel_url = settings.payhere_cancel_url
        self.notify_url = settings.payhere_notify_url
        self._client = client

        # Environment safety: force sandbox in non-production
        if settings.environment != "production":
            self.sandbox = True

        self.base_url = (
            "https://sandbox.payhere.lk"
            if self.sandbox
            else "https://www.payhere.lk"
        )

    @property
    def is_sandbox(self) -> bool:
        """Explicit sandbox flag for external checks."""
        return self.sandbox

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.PAYHERE

    @property
    def checkout_url(self) -> str:
        return f"{self.base_url}/pay/checkout"

    def _secret_hash(self) -> str:
        return _md5_upper(self.merchant_secret or "")

    def generate_hash(self, order_id: str, amount: str, currency: str) -> str:
        """Checkout hash PayHere expects alongside the form fields."""
        return _md5_upper(
            f"{self.merchant_id}{order_id}{amount}{currency}{self._secret_hash()}"
        )

    def generate_notify_signature(
        self, order_id: str, amount: str, currency: str, status_code: str
    ) -> str:
        """Signature PayHere puts in ``md5sig`` on the notify callback."""
        return _md5_upper(
            f"{self.merchant_id}{order_id}{amount}{currency}{status_code}{self._secret_hash()}"
        )

    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        order_reference: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Build the signed PayHere checkout form."""
        if not self.merchant_id or not self.merchant_secret:
            return PaymentResult(
                success=False,
                order_reference=order_reference,
                error_message="PayHere credentials not configured",
            )

        if amount <= 0:
            return PaymentResult(
                success=False,
                order_reference=order_reference,
                error_message="Payment amount must be positive",
            )

        amount_formatted = f"{Decimal(amount):.2f}"
        metadata = metadata or {}

        params = {
            "merchant_id": self.merchant_id,
            "return_url": self.return_url,
            "cancel_url": self.cancel_url,
            "notify_url": self.notify_url,
            "order_id": order_reference,
            "items": description[:100],
            "currency": currency,
            "amount": amount_formatted,
            "first_name": str(metadata.get("first_name", "")),
            "last_name": str(metadata.get("last_name", "")),
            "email": str(metadata.get("email", "")),
            "phone": str(metadata.get("phone", "")),
            "address": str(metadata.get("address", "")),
            "city": str(metadata.get("city", "")),
            "country": str(metadata.get("country", "Sri Lanka")),
            "custom_1": str(metadata.get("booking_id", "")),
        }
        params["hash"] = self.generate_hash(order_reference, amount_formatted, currency)

        session = PaymentSession(
            action_url=self.checkout_url,
            params=params,
            order_reference=order_reference,
            amount=Decimal(amount_formatted),
            currency=currency,
        )

        return PaymentResult(
            success=True,
            order_reference=order_reference,
            session=session,
            raw_response={"sandbox": self.sandbox},
        )

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        credentials = base64.b64encode(f"{self.app_id}:{self.app_secret}".encode()).decode()
        response = await client.post(
            f"{self.base_url}/merchant/v1/oauth/token",
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {credentials}"},
            timeout=30.0,
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def retrieve_payment(
        self,
        order_reference: str,
    ) -> PaymentResult:
        """Ask PayHere's retrieval API how an order ended up."""
        if not self.app_id or not self.app_secret:
            return PaymentResult(
                success=False,
                order_reference=order_reference,
                error_message="PayHere API credentials not configured",
            )

        try:
            if self._client is not None:
                return await self._retrieve(self._client, order_reference)
            async with httpx.AsyncClient() as client:
                return await self._retrieve(client, order_reference)
        except httpx.HTTPError as e:
            logger.error("PayHere retrieval failed for %s: %s", order_reference, e)
            return PaymentResult(
                success=False,
                order_reference=order_reference,
                error_message=str(e),
            )

    async def _retrieve(self, client: httpx.AsyncClient, order_reference: str) -> PaymentResult:
        token = await self._access_token(client)
        response = await client.get(
            f"{self.base_url}/merchant/v1/payment/search",
            params={"order_id": order_reference},
            headers={"Authorization": f"Bearer {token}"},
            timeout=30.0,
        )

        if response.status_code != 200:
            return PaymentResult(
                success=False,
                order_reference=order_reference,
                error_message=f"API returned {response.status_code}",
                raw_response={"status_code": response.status_code},
            )

        data = response.json()
        payments = data.get("data") or []
        latest = payments[0] if payments else {}
        return PaymentResult(
            success=latest.get("status") == "RECEIVED",
            order_reference=order_reference,
            transaction_id=str(latest["payment_id"]) if latest.get("payment_id") else None,
            raw_response=data,
        )

    def verify_callback(
        self,
        payload: dict[str, str],
    ) -> CallbackResult | None:
        """Verify a PayHere notify callback."""
        required = ("merchant_id", "order_id", "payhere_amount", "payhere_currency", "status_code", "md5sig")
        if any(not payload.get(key) for key in required):
            return None

        if payload["merchant_id"] != self.merchant_id:
            return None

        expected = self.generate_notify_signature(
            payload["order_id"],
            payload["payhere_amount"],
            payload["payhere_currency"],
            payload["status_code"],
        )
        if not hmac.compare_digest(expected, payload["md5sig"].upper()):
            return None

        return CallbackResult(
            order_reference=payload["order_id"],
            success=payload["status_code"] == STATUS_SUCCESS,
            transaction_id=payload.get("payment_id"),
            status_code=payload["status_code"],
            raw_payload=dict(payload),
        )
