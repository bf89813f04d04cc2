"""Payment gateway port (abstract interface).

Defines the contract every processor adapter implements. The orchestrator only
ever talks to this interface, so FakeGateway (dev/test) and MidtransGateway
(sandbox/production) are interchangeable.

Every network call takes a per-call `timeout` in seconds and raises
`GatewayError` on any failure: transport errors, timeouts, HTTP errors, and
rejections reported in the response body.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pos.gateway.status import interpret_external_status
from pos.payment.status import PaymentStatus


@dataclass(frozen=True)
class LineItem:
    """One entry of the charge's item list. `price` is per unit, may be negative."""

    id: str
    name: str
    price: int
    quantity: int

    @property
    def amount(self) -> int:
        return self.price * self.quantity


@dataclass(frozen=True)
class Customer:
    name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class ChargeRequest:
    order_reference: str
    gross_amount: int
    line_items: list[LineItem]
    customer: Customer = field(default_factory=Customer)
    expiry_minutes: int | None = None


@dataclass(frozen=True)
class ChargeResult:
    """Result of a successful QR charge."""

    external_reference: str
    qr_payload: str
    verification_url: str | None = None
    raw_response: str | None = None


@dataclass(frozen=True)
class StatusResult:
    """Processor view of a charge, already mapped to our vocabulary."""

    status: PaymentStatus
    external_status: str
    external_reference: str | None = None
    message: str | None = None
    raw_response: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def request_charge(self, request: ChargeRequest, *, timeout: float | None = None) -> ChargeResult:
        """Create a fixed-amount QR charge for `request.order_reference`."""
        ...

    @abstractmethod
    def check_status(self, order_reference: str, *, timeout: float | None = None) -> StatusResult:
        """Ask the processor for the current state of a charge. Side-effect free."""
        ...

    @abstractmethod
    def cancel_charge(self, order_reference: str, *, timeout: float | None = None) -> None:
        """Void an unpaid charge so the customer can no longer settle it."""
        ...

    @abstractmethod
    def verify_notification(self, payload: dict) -> bool:
        """Verify that a notification payload is authentically from the processor."""
        ...

    def interpret_status(self, external_status: str | None) -> PaymentStatus:
        return interpret_external_status(external_status)
