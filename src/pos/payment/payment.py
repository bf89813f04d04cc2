"""Payment aggregate: one QRIS payment attempt against a transaction.

A transaction may accumulate several payments over time (a failed attempt
followed by a new one, say), but at most one of them may be pending or
successful at once. That rule is carried by `active_slot`, a unique field
that holds the transaction id while the payment is active and a value private
to this payment otherwise. Two active payments for one transaction therefore
collide on storage uniqueness, whichever process writes them.

`charge_reference` is the processor's id for the current charge and is the key
notifications are matched on. `external_reference` stays empty until the
charge settles.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String, Text

from pos.domain import pos
from pos.exceptions import InvalidState
from pos.payment.events import (
    PaymentCancelled,
    PaymentCodeIssued,
    PaymentCodeReissued,
    PaymentExpired,
    PaymentFailed,
    PaymentSucceeded,
)
from pos.payment.status import ACTIVE_STATUSES, FINAL_STATUSES, VALID_TRANSITIONS, PaymentStatus

PAYMENT_METHOD_QRIS = "qris"


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes coming back from storage as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@pos.aggregate
class Payment:
    transaction_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)
    method = String(max_length=20, default=PAYMENT_METHOD_QRIS)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    order_reference = String(max_length=50, required=True)
    charge_reference = String(max_length=255)
    external_reference = String(max_length=255)
    external_response = Text()
    active_slot = String(max_length=255, unique=True)
    paid_at = DateTime()
    expires_at = DateTime(required=True)
    created_at = DateTime()
    updated_at = DateTime()
    deleted_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, transaction_id, amount, order_reference, charge_reference, expires_at):
        now = datetime.now(UTC)
        payment = cls(
            transaction_id=transaction_id,
            amount=amount,
            method=PAYMENT_METHOD_QRIS,
            status=PaymentStatus.PENDING.value,
            order_reference=order_reference,
            charge_reference=charge_reference,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        payment._sync_slot()
        payment.raise_(
            PaymentCodeIssued(
                payment_id=str(payment.id),
                transaction_id=str(transaction_id),
                amount=amount,
                order_reference=order_reference,
                expires_at=expires_at,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING.value

    @property
    def is_final(self) -> bool:
        return PaymentStatus(self.status) in FINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return PaymentStatus(self.status) in ACTIVE_STATUSES and self.deleted_at is None

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once the code's validity window has passed."""
        now = now or datetime.now(UTC)
        return now > as_utc(self.expires_at)

    def can_be_processed(self, now: datetime | None = None) -> bool:
        """A pending payment whose code the customer can still scan."""
        return self.is_pending and not self.is_expired(now)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _sync_slot(self) -> None:
        self.active_slot = str(self.transaction_id) if self.is_active else f"released:{self.id}"

    def _transition(self, target: PaymentStatus, now: datetime) -> None:
        current = PaymentStatus(self.status)
        if target not in VALID_TRANSITIONS.get(current, set()):
            raise InvalidState(f"Cannot move payment from {current.value} to {target.value}")
        self.status = target.value
        self.updated_at = now
        self._sync_slot()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_success(self, external_reference: str | None, external_response: str | None, paid_at=None) -> None:
        paid_at = paid_at or datetime.now(UTC)
        self._transition(PaymentStatus.SUCCESS, paid_at)
        self.paid_at = paid_at
        self.external_reference = external_reference or self.charge_reference
        self.external_response = external_response
        self.raise_(
            PaymentSucceeded(
                payment_id=str(self.id),
                transaction_id=str(self.transaction_id),
                amount=self.amount,
                external_reference=self.external_reference,
                paid_at=paid_at,
            )
        )

    def mark_failed(self, external_response: str | None = None) -> None:
        now = datetime.now(UTC)
        self._transition(PaymentStatus.FAILED, now)
        self.external_response = external_response
        self.raise_(PaymentFailed(payment_id=str(self.id), transaction_id=str(self.transaction_id), failed_at=now))

    def mark_expired(self) -> None:
        now = datetime.now(UTC)
        self._transition(PaymentStatus.EXPIRED, now)
        self.raise_(PaymentExpired(payment_id=str(self.id), transaction_id=str(self.transaction_id), expired_at=now))

    def cancel(self) -> None:
        if not self.is_pending:
            raise InvalidState("Only pending payments can be cancelled")
        now = datetime.now(UTC)
        self._transition(PaymentStatus.CANCELLED, now)
        self.raise_(
            PaymentCancelled(payment_id=str(self.id), transaction_id=str(self.transaction_id), cancelled_at=now)
        )

    def reissue(self, order_reference: str, charge_reference: str, expires_at: datetime) -> None:
        """Point this payment at a fresh charge, back in pending."""
        current = PaymentStatus(self.status)
        if current not in (PaymentStatus.PENDING, PaymentStatus.EXPIRED):
            raise InvalidState(f"Cannot refresh a {current.value} payment")

        now = datetime.now(UTC)
        previous_order_reference = self.order_reference
        if current == PaymentStatus.EXPIRED:
            self._transition(PaymentStatus.PENDING, now)
        self.order_reference = order_reference
        self.charge_reference = charge_reference
        self.external_reference = None
        self.external_response = None
        self.expires_at = expires_at
        self.updated_at = now
        self.raise_(
            PaymentCodeReissued(
                payment_id=str(self.id),
                transaction_id=str(self.transaction_id),
                previous_order_reference=previous_order_reference,
                order_reference=order_reference,
                expires_at=expires_at,
            )
        )
