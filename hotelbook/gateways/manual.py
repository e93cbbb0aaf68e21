"""Manual payment gateway adapter for bank transfers."""

from decimal import Decimal

from hotelbook.gateways.base import (
    CallbackResult,
    GatewayType,
    PaymentGateway,
    PaymentResult,
)


class ManualGateway(PaymentGateway):
    """Manual payment gateway for bank transfers.

    Nothing leaves the hotel: the guest transfers money and an admin
    confirms receipt.
    """

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        order_reference: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Record a bank transfer request (always succeeds, no session)."""
        return PaymentResult(
            success=True,
            order_reference=order_reference,
            transaction_id=f"manual_{order_reference}",
            raw_response={
                "type": "bank_transfer",
                "status": "pending_verification",
                "instructions": "Transfer the total to the hotel bank account and quote your booking number",
            },
        )

    async def retrieve_payment(
        self,
        order_reference: str,
    ) -> PaymentResult:
        """Bank transfers can only be verified by an admin."""
        return PaymentResult(
            success=False,
            order_reference=order_reference,
            error_message="Manual verification required by admin",
        )

    def verify_callback(
        self,
        payload: dict[str, str],
    ) -> CallbackResult | None:
        """Manual gateway doesn't have callbacks."""
        return None
