"""Domain events for the Payment and QRCode aggregates."""

from protean.fields import DateTime, Identifier, Integer, String

from pos.domain import pos


@pos.event(part_of="Payment")
class PaymentCodeIssued:
    """A QR charge was created at the processor and recorded locally."""

    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Integer(required=True)
    order_reference = String(required=True, max_length=50)
    expires_at = DateTime(required=True)


@pos.event(part_of="Payment")
class PaymentCodeReissued:
    """An expired or stale QR charge was replaced by a fresh one."""

    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    previous_order_reference = String(max_length=50)
    order_reference = String(required=True, max_length=50)
    expires_at = DateTime(required=True)


@pos.event(part_of="Payment")
class PaymentSucceeded:
    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Integer(required=True)
    external_reference = String(max_length=255)
    paid_at = DateTime(required=True)


@pos.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    failed_at = DateTime(required=True)


@pos.event(part_of="Payment")
class PaymentExpired:
    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    expired_at = DateTime(required=True)


@pos.event(part_of="Payment")
class PaymentCancelled:
    __version__ = 1

    payment_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)
