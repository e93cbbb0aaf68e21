"""Base payment gateway interface.

All gateway adapters must implement this interface.
Business logic should NOT live in adapters - only gateway communication.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class GatewayType(str, Enum):
    """Supported payment gateways."""

    PAYHERE = "payhere"
    MANUAL = "manual"


@dataclass
class PaymentSession:
    """Everything the caller needs to hand the guest over to the gateway."""

    action_url: str
    params: dict[str, str]
    order_reference: str
    amount: Decimal
    currency: str


@dataclass
class PaymentResult:
    """Result of a payment operation."""

    success: bool
    order_reference: str | None = None
    transaction_id: str | None = None
    session: PaymentSession | None = None
    error_message: str | None = None
    raw_response: dict = field(default_factory=dict)


@dataclass
class CallbackResult:
    """A verified gateway notification about one order."""

    order_reference: str
    success: bool
    transaction_id: str | None = None
    status_code: str | None = None
    raw_payload: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""
        pass

    @abstractmethod
    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        order_reference: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create a payment session.

        Args:
            amount: Amount in the hotel currency
            currency: Currency code (LKR)
            order_reference: Internal reference (booking number)
            description: Payment description
            metadata: Additional metadata (customer details)

        Returns:
            PaymentResult carrying the session on success
        """
        pass

    @abstractmethod
    async def retrieve_payment(
        self,
        order_reference: str,
    ) -> PaymentResult:
        """Look up the gateway's view of an order.

        Args:
            order_reference: Internal reference passed to create_session

        Returns:
            PaymentResult with current status
        """
        pass

    @abstractmethod
    def verify_callback(
        self,
        payload: dict[str, str],
    ) -> CallbackResult | None:
        """Verify a gateway notification and parse it.

        Args:
            payload: Form fields posted by the gateway

        Returns:
            CallbackResult if the signature is valid, None otherwise
        """
        pass
