"""Midtrans transaction status vocabulary.

This is the only place that knows the processor's words for payment state.
Everything past the gateway boundary speaks `PaymentStatus`.
"""

from pos.payment.status import PaymentStatus

_EXTERNAL_TO_INTERNAL = {
    "settlement": PaymentStatus.SUCCESS,
    "capture": PaymentStatus.SUCCESS,
    "pending": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "expire": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
}


def interpret_external_status(external_status: str | None) -> PaymentStatus:
    """Map a processor status to ours. Unknown words are treated as still pending."""
    if not external_status:
        return PaymentStatus.PENDING
    return _EXTERNAL_TO_INTERNAL.get(external_status.strip().lower(), PaymentStatus.PENDING)
