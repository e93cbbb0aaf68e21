"""Payment gateway service.

Routes payment operations to the appropriate gateway adapter.
No business logic here - only gateway coordination.
"""

from decimal import Decimal

from hotelbook.gateways.base import (
    CallbackResult,
    GatewayType,
    PaymentGateway,
    PaymentResult,
)
from hotelbook.gateways.manual import ManualGateway
from hotelbook.gateways.payhere import PayHereGateway
from hotelbook.schemas.booking import PaymentMethod

METHOD_GATEWAYS: dict[PaymentMethod, GatewayType] = {
    PaymentMethod.CARD: GatewayType.PAYHERE,
    PaymentMethod.BANK: GatewayType.MANUAL,
}


class GatewayService:
    """Service for managing payment gateway operations."""

    def __init__(self, gateways: dict[GatewayType, PaymentGateway] | None = None):
        self._gateways: dict[GatewayType, PaymentGateway] = dict(gateways or {})

    def _get_gateway(self, gateway_type: str | GatewayType) -> PaymentGateway:
        """Get or create gateway instance."""
        if isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type)
            except ValueError:
                gateway_type = GatewayType.MANUAL

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.PAYHERE:
                self._gateways[gateway_type] = PayHereGateway()
            else:
                self._gateways[gateway_type] = ManualGateway()

        return self._gateways[gateway_type]

    def gateway_for(self, method: PaymentMethod) -> GatewayType:
        return METHOD_GATEWAYS.get(PaymentMethod(method), GatewayType.MANUAL)

    async def create_session(
        self,
        gateway_type: str | GatewayType,
        amount: Decimal,
        currency: str,
        order_reference: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create payment session via specified gateway."""
        gateway = self._get_gateway(gateway_type)
        return await gateway.create_session(
            amount=amount,
            currency=currency,
            order_reference=order_reference,
            description=description,
            metadata=metadata,
        )

    async def retrieve_payment(
        self,
        gateway_type: str | GatewayType,
        order_reference: str,
    ) -> PaymentResult:
        """Look up payment status via gateway."""
        gateway = self._get_gateway(gateway_type)
        return await gateway.retrieve_payment(order_reference)

    def verify_callback(
        self,
        gateway_type: str | GatewayType,
        payload: dict[str, str],
    ) -> CallbackResult | None:
        """Verify callback from gateway."""
        gateway = self._get_gateway(gateway_type)
        return gateway.verify_callback(payload)


# Singleton instance
gateway_service = GatewayService()
