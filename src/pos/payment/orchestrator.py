"""Payment orchestration: issuing QR codes and reconciling their status.

The orchestrator coordinates the Transaction, Payment and QRCode aggregates
with the payment processor. Its rules:

- At most one pending or successful payment per transaction. Every unit of
  work that claims or releases the slot runs under `PaymentRepository.slot_guard`;
  a losing concurrent issue returns the winner instead of failing.
- A pending payment without a QR code is still being issued until it is older
  than `orphan_grace_seconds`. Callers wait for its code rather than void it.
- Processor calls never run inside a unit of work. Each read-modify-write of
  local state runs in exactly one.
- Status only moves forward. Success, failure and cancellation are final.
- A status poll never fails because the processor is unreachable; the caller
  sees the last local status and polls again.

Flows:
    generate_code       → charge at processor → persist Payment → persist QRCode
    get_status          → expire locally, or poll processor and apply result
    refresh_code        → new charge → rewrite Payment and QRCode in place
    handle_notification → apply a processor push, idempotently
    cancel_payment      → void at processor → cancel Payment and Transaction
"""

import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from structlog.contextvars import bound_contextvars

from pos.config import DEFAULT_GATEWAY_TIMEOUT_SECONDS, DEFAULT_QR_EXPIRY_MINUTES
from pos.exceptions import (
    ConstraintViolation,
    GatewayError,
    InvalidState,
    PaymentGenerationFailed,
    PaymentNotFound,
)
from pos.gateway.port import ChargeRequest, ChargeResult, PaymentGateway
from pos.payment.charge import build_line_items, build_order_reference, customer_for, line_items_total
from pos.payment.payment import Payment, as_utc
from pos.payment.qr_code import QRCode
from pos.payment.status import PaymentStatus
from pos.transaction.transaction import Transaction

_ISSUE_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class PaymentCode:
    """A payment together with the QR code the customer scans."""

    payment: Payment
    qr_code: QRCode
    reused: bool = False


@dataclass(frozen=True)
class StatusReport:
    payment: Payment
    transaction_status: str
    gateway_checked: bool = False
    message: str | None = None


class NotificationResult(Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"
    UNKNOWN_PAYMENT = "unknown_payment"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class NotificationOutcome:
    result: NotificationResult
    payment: Payment | None = None


class PaymentOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        default_expiry_minutes: int = DEFAULT_QR_EXPIRY_MINUTES,
        gateway_timeout: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS,
        logger=None,
        issue_wait_seconds: float = 2.0,
        orphan_grace_seconds: float = 60.0,
    ) -> None:
        self.gateway = gateway
        self.default_expiry_minutes = default_expiry_minutes
        self.gateway_timeout = gateway_timeout
        self.issue_wait_seconds = issue_wait_seconds
        self.orphan_grace_seconds = orphan_grace_seconds
        self.logger = logger or structlog.get_logger(__name__)

    # -------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------
    @property
    def _transactions(self):
        return current_domain.repository_for(Transaction)

    @property
    def _payments(self):
        return current_domain.repository_for(Payment)

    @property
    def _qr_codes(self):
        return current_domain.repository_for(QRCode)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _expiry_minutes(self, expiry_minutes: int | None) -> int:
        return expiry_minutes if expiry_minutes and expiry_minutes > 0 else self.default_expiry_minutes

    def _timeout(self, timeout: float | None) -> float:
        return timeout or self.gateway_timeout

    def _payable_transaction(self, transaction_id) -> Transaction:
        transaction = self._transactions.get_live(transaction_id)
        if not transaction.is_pending:
            raise InvalidState(f"Transaction {transaction_id} is {transaction.status}, not pending")
        if not transaction.items:
            raise InvalidState("Cannot take payment for a transaction with no items", field="items")
        if (transaction.total_amount or 0) <= 0:
            raise InvalidState("Transaction total must be greater than zero", field="total_amount")
        return transaction

    def _charge(
        self, transaction: Transaction, expiry_minutes: int, timeout: float | None, now: datetime
    ) -> tuple[ChargeRequest, ChargeResult]:
        """Build, reconcile and place a charge for the transaction's current total."""
        line_items = build_line_items(transaction)
        items_total = line_items_total(line_items)
        if items_total != transaction.total_amount:
            self.logger.error(
                "charge_items_mismatch",
                items_total=items_total,
                total_amount=transaction.total_amount,
            )
            raise PaymentGenerationFailed(
                f"Line items sum to {items_total} but the transaction total is {transaction.total_amount}",
                transaction_id=str(transaction.id),
            )

        request = ChargeRequest(
            order_reference=build_order_reference(transaction.id, now),
            gross_amount=transaction.total_amount,
            line_items=line_items,
            customer=customer_for(transaction),
            expiry_minutes=expiry_minutes,
        )
        try:
            result = self.gateway.request_charge(request, timeout=self._timeout(timeout))
        except GatewayError as exc:
            self.logger.warning("charge_rejected", order_reference=request.order_reference, error=exc.detail)
            raise PaymentGenerationFailed(
                f"Payment processor refused the charge: {exc.detail}",
                transaction_id=str(transaction.id),
            ) from exc
        return request, result

    def _cancel_quietly(self, order_reference: str, timeout: float | None = None) -> None:
        """Void a charge nobody will use. Failure is logged, never raised."""
        try:
            self.gateway.cancel_charge(order_reference, timeout=self._timeout(timeout))
        except GatewayError as exc:
            self.logger.error("orphan_charge_cancel_failed", order_reference=order_reference, error=exc.detail)

    def _expire_quietly(self, payment: Payment) -> None:
        try:
            with self._payments.slot_guard(payment.transaction_id), UnitOfWork():
                fresh = self._payments.get(payment.id)
                if fresh.is_pending:
                    fresh.mark_expired()
                    self._payments.persist(fresh)
        except (InvalidState, ConstraintViolation) as exc:
            self.logger.warning("payment_expiry_failed", payment_id=str(payment.id), error=str(exc))

    def _in_flight(self, payment: Payment, now: datetime) -> bool:
        """A pending payment young enough that its QR code may still be on its way."""
        return as_utc(payment.created_at) + timedelta(seconds=self.orphan_grace_seconds) > now

    def _await_code(self, transaction_id) -> PaymentCode:
        """The active payment and its QR code, waiting briefly for a concurrent issue to store the code."""
        deadline = time.monotonic() + self.issue_wait_seconds
        while True:
            active = self._payments.find_active(transaction_id)
            qr_code = self._qr_codes.find_for_payment(active.id) if active else None
            if qr_code is not None:
                return PaymentCode(payment=active, qr_code=qr_code, reused=True)
            if active is None or time.monotonic() >= deadline:
                raise PaymentGenerationFailed(
                    "A concurrent payment request is still being issued; retry shortly",
                    transaction_id=str(transaction_id),
                )
            time.sleep(_ISSUE_POLL_SECONDS)

    # -------------------------------------------------------------------
    # Generate
    # -------------------------------------------------------------------
    def generate_code(
        self,
        transaction_id,
        amount: int | None = None,
        expiry_minutes: int | None = None,
        *,
        timeout: float | None = None,
    ) -> PaymentCode:
        """Issue a QR payment code for a pending transaction, or return the live one."""
        with bound_contextvars(transaction_id=str(transaction_id)):
            transaction = self._payable_transaction(transaction_id)
            if amount is not None and amount != transaction.total_amount:
                raise ValidationError(
                    {"amount": [f"Amount {amount} does not match transaction total {transaction.total_amount}"]}
                )

            now = datetime.now(UTC)
            existing = self._payments.find_for_transaction(transaction.id)
            if existing is not None and existing.is_pending:
                qr_code = self._qr_codes.find_for_payment(existing.id)
                if existing.can_be_processed(now) and qr_code is not None:
                    self.logger.info("payment_code_reused", payment_id=str(existing.id))
                    return PaymentCode(payment=existing, qr_code=qr_code, reused=True)
                if qr_code is None and not existing.is_expired(now) and self._in_flight(existing, now):
                    self.logger.info("payment_code_in_flight", payment_id=str(existing.id))
                    return self._await_code(transaction.id)
                if not existing.is_expired(now):
                    self.logger.warning("pending_payment_without_qr_code", payment_id=str(existing.id))
                    self._cancel_quietly(existing.order_reference, timeout)
                self._expire_quietly(existing)
            elif existing is not None and existing.status == PaymentStatus.SUCCESS.value:
                raise InvalidState(f"Transaction {transaction_id} has already been paid")

            minutes = self._expiry_minutes(expiry_minutes)
            expires_at = now + timedelta(minutes=minutes)
            request, result = self._charge(transaction, minutes, timeout, now)

            try:
                with self._payments.slot_guard(transaction.id), UnitOfWork():
                    payment = Payment.create(
                        transaction_id=transaction.id,
                        amount=request.gross_amount,
                        order_reference=request.order_reference,
                        charge_reference=result.external_reference,
                        expires_at=expires_at,
                    )
                    self._payments.persist(payment)
            except ConstraintViolation:
                self.logger.warning("payment_issue_conflict", order_reference=request.order_reference)
                self._cancel_quietly(request.order_reference, timeout)
                return self._await_code(transaction.id)

            try:
                with UnitOfWork():
                    qr_code = QRCode.create(
                        transaction_id=transaction.id,
                        payment_id=payment.id,
                        code=result.qr_payload,
                        verification_url=result.verification_url,
                        expires_at=expires_at,
                    )
                    self._qr_codes.persist(qr_code)
            except Exception:
                self.logger.error(
                    "qr_code_persist_failed",
                    payment_id=str(payment.id),
                    order_reference=request.order_reference,
                    exc_info=True,
                )
                self._payments.hard_delete(payment)
                self._cancel_quietly(request.order_reference, timeout)
                raise

            payment = self._payments.get(payment.id)
            if not payment.is_active:
                self.logger.error("payment_superseded_during_issue", payment_id=str(payment.id), status=payment.status)
                raise PaymentGenerationFailed(
                    f"Payment {payment.id} became {payment.status} while its code was being issued; retry",
                    transaction_id=str(transaction.id),
                )

            self.logger.info(
                "payment_code_issued",
                payment_id=str(payment.id),
                order_reference=request.order_reference,
                amount=request.gross_amount,
            )
            return PaymentCode(payment=payment, qr_code=qr_code)

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def _apply_status(
        self,
        payment: Payment,
        target: PaymentStatus,
        external_reference: str | None,
        raw_response: str | None,
    ) -> tuple[NotificationResult, Payment]:
        """Move a payment to `target` if that is a forward step; settle its transaction."""
        payment_id = payment.id
        try:
            with self._payments.slot_guard(payment.transaction_id), UnitOfWork():
                payment = self._payments.get(payment_id)
                current = PaymentStatus(payment.status)

                if payment.is_final:
                    if current != target:
                        self.logger.warning(
                            "payment_status_downgrade_ignored",
                            payment_id=str(payment_id),
                            current=current.value,
                            reported=target.value,
                        )
                    return NotificationResult.UNCHANGED if current == target else NotificationResult.IGNORED, payment

                if target == PaymentStatus.SUCCESS:
                    paid_at = datetime.now(UTC)
                    late = current == PaymentStatus.EXPIRED
                    payment.mark_success(external_reference, raw_response, paid_at=paid_at)
                    self._payments.persist(payment)

                    transaction = self._transactions.get(payment.transaction_id)
                    if transaction.is_pending:
                        transaction.mark_paid(paid_at)
                        self._transactions.add(transaction)
                    else:
                        self.logger.error(
                            "payment_settled_for_closed_transaction",
                            payment_id=str(payment_id),
                            transaction_status=transaction.status,
                        )
                    if late:
                        self.logger.warning("late_settlement_honoured", payment_id=str(payment_id))
                    return NotificationResult.APPLIED, payment

                if target == PaymentStatus.FAILED and current == PaymentStatus.PENDING:
                    payment.mark_failed(raw_response)
                    self._payments.persist(payment)
                    return NotificationResult.APPLIED, payment

                return NotificationResult.UNCHANGED, payment
        except ConstraintViolation:
            self.logger.error(
                "late_settlement_conflict",
                payment_id=str(payment_id),
                external_reference=external_reference,
                detail="processor settled a payment while another payment holds the transaction; manual review needed",
            )
            return NotificationResult.CONFLICT, self._payments.get(payment_id)

    def get_status(self, transaction_id, *, timeout: float | None = None) -> StatusReport:
        """Current payment status, consulting the processor only while it can still change."""
        with bound_contextvars(transaction_id=str(transaction_id)):
            transaction = self._transactions.get_live(transaction_id)
            payment = self._payments.find_for_transaction(transaction.id)
            if payment is None:
                raise PaymentNotFound(str(transaction_id))

            if not payment.is_pending:
                return StatusReport(payment=payment, transaction_status=transaction.status)

            if payment.is_expired():
                self._expire_quietly(payment)
                payment = self._payments.get(payment.id)
                self.logger.info("payment_expired", payment_id=str(payment.id))
                return StatusReport(
                    payment=payment,
                    transaction_status=self._transactions.get(transaction.id).status,
                )

            try:
                result = self.gateway.check_status(payment.order_reference, timeout=self._timeout(timeout))
            except GatewayError as exc:
                self.logger.warning(
                    "payment_status_check_failed",
                    payment_id=str(payment.id),
                    order_reference=payment.order_reference,
                    error=exc.detail,
                )
                return StatusReport(
                    payment=payment,
                    transaction_status=transaction.status,
                    message="Payment processor unavailable; status unchanged",
                )

            _, payment = self._apply_status(payment, result.status, result.external_reference, result.raw_response)
            return StatusReport(
                payment=payment,
                transaction_status=self._transactions.get(transaction.id).status,
                gateway_checked=True,
                message=result.message,
            )

    # -------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------
    def refresh_code(
        self,
        transaction_id,
        expiry_minutes: int | None = None,
        *,
        timeout: float | None = None,
    ) -> PaymentCode:
        """Replace a pending or expired payment's charge, rewriting its rows in place."""
        with bound_contextvars(transaction_id=str(transaction_id)):
            transaction = self._payable_transaction(transaction_id)
            payment = self._payments.find_for_transaction(transaction.id)
            if payment is None:
                raise PaymentNotFound(str(transaction_id))
            if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.EXPIRED.value):
                raise InvalidState(f"Cannot refresh a {payment.status} payment")

            previous_order_reference = payment.order_reference
            was_pending = payment.is_pending
            now = datetime.now(UTC)
            minutes = self._expiry_minutes(expiry_minutes)
            expires_at = now + timedelta(minutes=minutes)
            request, result = self._charge(transaction, minutes, timeout, now)

            try:
                with self._payments.slot_guard(transaction.id), UnitOfWork():
                    payment = self._payments.get(payment.id)
                    payment.amount = request.gross_amount
                    payment.reissue(request.order_reference, result.external_reference, expires_at)
                    self._payments.persist(payment)

                    qr_code = self._qr_codes.find_for_payment(payment.id)
                    if qr_code is None:
                        qr_code = QRCode.create(
                            transaction_id=transaction.id,
                            payment_id=payment.id,
                            code=result.qr_payload,
                            verification_url=result.verification_url,
                            expires_at=expires_at,
                        )
                    else:
                        qr_code.replace(result.qr_payload, result.verification_url, expires_at)
                    self._qr_codes.persist(qr_code)
            except ConstraintViolation:
                self.logger.warning("payment_refresh_conflict", payment_id=str(payment.id))
                self._cancel_quietly(request.order_reference, timeout)
                return self._await_code(transaction.id)
            except InvalidState:
                self._cancel_quietly(request.order_reference, timeout)
                raise

            if was_pending:
                self._cancel_quietly(previous_order_reference, timeout)

            self.logger.info(
                "payment_code_refreshed",
                payment_id=str(payment.id),
                previous_order_reference=previous_order_reference,
                order_reference=request.order_reference,
            )
            return PaymentCode(payment=payment, qr_code=qr_code)

    # -------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------
    def handle_notification(
        self,
        order_reference: str,
        external_status: str,
        external_reference: str | None = None,
        payload: str | None = None,
    ) -> NotificationOutcome:
        """Apply a processor status push. Replays and stale pushes change nothing."""
        with bound_contextvars(order_reference=order_reference, external_status=external_status):
            payment = None
            if external_reference:
                payment = self._payments.find_by_charge_reference(external_reference)
            if payment is None and order_reference:
                payment = self._payments.find_by_order_reference(order_reference)
            if payment is None:
                self.logger.warning("notification_for_unknown_payment", external_reference=external_reference)
                return NotificationOutcome(result=NotificationResult.UNKNOWN_PAYMENT)

            target = self.gateway.interpret_status(external_status)
            result, payment = self._apply_status(payment, target, external_reference, payload)
            self.logger.info(
                "notification_processed",
                payment_id=str(payment.id),
                result=result.value,
                status=payment.status,
            )
            return NotificationOutcome(result=result, payment=payment)

    # -------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------
    def cancel_payment(self, transaction_id, *, timeout: float | None = None) -> Payment:
        """Void a pending payment at the processor, then cancel it and its transaction."""
        with bound_contextvars(transaction_id=str(transaction_id)):
            transaction = self._transactions.get_live(transaction_id)
            payment = self._payments.find_for_transaction(transaction.id)
            if payment is None:
                raise PaymentNotFound(str(transaction_id))
            if not payment.is_pending:
                raise InvalidState(f"Cannot cancel a {payment.status} payment")

            self.gateway.cancel_charge(payment.order_reference, timeout=self._timeout(timeout))

            with self._payments.slot_guard(transaction.id), UnitOfWork():
                payment = self._payments.get(payment.id)
                payment.cancel()
                self._payments.persist(payment)

                transaction = self._transactions.get(transaction.id)
                if transaction.is_pending:
                    transaction.cancel(reason="Payment cancelled")
                    self._transactions.add(transaction)

            self.logger.info("payment_cancelled", payment_id=str(payment.id))
            return payment
