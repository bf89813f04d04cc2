"""Repositories for Payment and QRCode.

Soft-deleted rows are filtered out of every lookup here. `PaymentRepository.persist`
is the only write path for payments: it enforces the one-active-payment rule
by refusing a second holder of a transaction's `active_slot` and reports the
collision as a typed `ConstraintViolation`.

Writes that claim a slot run under `PaymentRepository.slot_guard`. Within one
process the guard serializes the check and the commit per transaction. Across
processes the unique index on `active_slot` rejects the second commit, and the
guard reports that as the same `ConstraintViolation`.
"""

import threading
from contextlib import contextmanager
from datetime import UTC, datetime

from protean.exceptions import TransactionError, ValidationError
from sqlalchemy.exc import IntegrityError

from pos.domain import pos
from pos.exceptions import ConstraintViolation
from pos.payment.payment import Payment, as_utc
from pos.payment.qr_code import QRCode
from pos.payment.status import PaymentStatus

_SLOT_LOCKS = tuple(threading.RLock() for _ in range(64))

ACTIVE_SLOT_CONSTRAINT = "payments.active_slot"


def _live(records):
    return [r for r in records if r.deleted_at is None]


def _slot_lock(transaction_id) -> threading.RLock:
    return _SLOT_LOCKS[hash(str(transaction_id)) % len(_SLOT_LOCKS)]


@pos.repository(part_of=Payment)
class PaymentRepository:
    @contextmanager
    def slot_guard(self, transaction_id):
        """Hold the transaction's slot while a unit of work claims or releases it.

        Open the unit of work inside the guard so its reads see every commit
        made before the lock was taken.
        """
        with _slot_lock(transaction_id):
            try:
                yield
            except IntegrityError as exc:
                raise ConstraintViolation(ACTIVE_SLOT_CONSTRAINT, str(transaction_id)) from exc
            except TransactionError as exc:
                if isinstance(exc.__cause__, IntegrityError):
                    raise ConstraintViolation(ACTIVE_SLOT_CONSTRAINT, str(transaction_id)) from exc
                raise

    def persist(self, payment: Payment) -> Payment:
        if payment.is_active:
            holders = self._dao.query.filter(active_slot=payment.active_slot).all().items
            if any(str(h.id) != str(payment.id) for h in holders):
                raise ConstraintViolation(ACTIVE_SLOT_CONSTRAINT, str(payment.transaction_id))
        try:
            return self.add(payment)
        except ValidationError as exc:
            if "active_slot" in (exc.messages or {}):
                raise ConstraintViolation(ACTIVE_SLOT_CONSTRAINT, str(payment.transaction_id)) from exc
            raise

    def hard_delete(self, payment: Payment) -> None:
        """Remove a payment row outright. Only used to undo a half-finished issue."""
        self._dao.delete(payment)

    def find_active(self, transaction_id) -> Payment | None:
        """The pending or successful payment holding the transaction's slot."""
        holders = _live(self._dao.query.filter(active_slot=str(transaction_id)).all().items)
        return holders[0] if holders else None

    def find_for_transaction(self, transaction_id) -> Payment | None:
        """The payment that speaks for a transaction: the active one, else the latest."""
        active = self.find_active(transaction_id)
        if active is not None:
            return active

        payments = _live(self._dao.query.filter(transaction_id=str(transaction_id)).all().items)
        if not payments:
            return None
        return max(payments, key=lambda p: as_utc(p.created_at))

    def find_by_charge_reference(self, charge_reference: str) -> Payment | None:
        matches = _live(self._dao.query.filter(charge_reference=charge_reference).all().items)
        return matches[0] if matches else None

    def find_by_order_reference(self, order_reference: str) -> Payment | None:
        matches = _live(self._dao.query.filter(order_reference=order_reference).all().items)
        return matches[0] if matches else None

    def find_stale_pending(self, as_of: datetime | None = None) -> list[Payment]:
        """Pending payments whose code has already expired."""
        as_of = as_of or datetime.now(UTC)
        pending = _live(self._dao.query.filter(status=PaymentStatus.PENDING.value).all().items)
        return [p for p in pending if as_utc(p.expires_at) <= as_of]


@pos.repository(part_of=QRCode)
class QRCodeRepository:
    def persist(self, qr_code: QRCode) -> QRCode:
        return self.add(qr_code)

    def find_for_payment(self, payment_id) -> QRCode | None:
        matches = _live(self._dao.query.filter(payment_id=str(payment_id)).all().items)
        return matches[0] if matches else None
