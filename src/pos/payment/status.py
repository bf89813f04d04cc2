"""Internal payment status vocabulary and its legal transitions.

State Machine:
    PENDING → SUCCESS | FAILED | EXPIRED | CANCELLED
    EXPIRED → PENDING   (refresh re-issues the code)
    EXPIRED → SUCCESS   (late settlement: the money already moved)

SUCCESS, FAILED and CANCELLED are final.
"""

from enum import Enum


class PaymentStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


FINAL_STATUSES = frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED})

# Statuses that occupy a transaction's single payment slot.
ACTIVE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.SUCCESS})

VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.SUCCESS,
        PaymentStatus.FAILED,
        PaymentStatus.EXPIRED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.EXPIRED: {PaymentStatus.PENDING, PaymentStatus.SUCCESS},
    PaymentStatus.SUCCESS: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.CANCELLED: set(),
}
