"""Tests for applying processor notifications."""

import json

from protean import current_domain

from pos.payment.orchestrator import NotificationResult
from pos.payment.payment import Payment
from pos.payment.status import PaymentStatus
from pos.transaction.transaction import Transaction, TransactionStatus


def _notify(orchestrator, notification):
    return orchestrator.handle_notification(
        order_reference=notification["order_id"],
        external_status=notification["transaction_status"],
        external_reference=notification["transaction_id"],
        payload=json.dumps(notification),
    )


class TestHandleNotification:
    def test_settlement_applies(self, orchestrator, gateway, make_transaction):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)

        outcome = _notify(orchestrator, gateway.settle(code.payment.order_reference))

        assert outcome.result == NotificationResult.APPLIED
        assert outcome.payment.status == PaymentStatus.SUCCESS.value
        stored = current_domain.repository_for(Transaction).get(transaction.id)
        assert stored.status == TransactionStatus.PAID.value

    def test_replay_is_a_no_op(self, orchestrator, gateway, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)
        notification = gateway.settle(code.payment.order_reference)
        _notify(orchestrator, notification)
        paid_at = current_domain.repository_for(Payment).get(code.payment.id).paid_at

        outcome = _notify(orchestrator, notification)

        assert outcome.result == NotificationResult.UNCHANGED
        assert current_domain.repository_for(Payment).get(code.payment.id).paid_at == paid_at

    def test_stale_pending_never_downgrades_success(self, orchestrator, gateway, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)
        settled = gateway.settle(code.payment.order_reference)
        _notify(orchestrator, settled)

        outcome = _notify(orchestrator, {**settled, "transaction_status": "pending"})

        assert outcome.result == NotificationResult.IGNORED
        assert outcome.payment.status == PaymentStatus.SUCCESS.value

    def test_failure_after_success_ignored(self, orchestrator, gateway, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)
        settled = gateway.settle(code.payment.order_reference)
        _notify(orchestrator, settled)

        outcome = _notify(orchestrator, {**settled, "transaction_status": "expire"})

        assert outcome.payment.status == PaymentStatus.SUCCESS.value

    def test_deny_marks_failed(self, orchestrator, gateway, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)

        outcome = _notify(orchestrator, gateway.settle(code.payment.order_reference, "deny"))

        assert outcome.payment.status == PaymentStatus.FAILED.value

    def test_lookup_falls_back_to_order_reference(self, orchestrator, gateway, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)
        notification = gateway.settle(code.payment.order_reference)

        outcome = _notify(orchestrator, {**notification, "transaction_id": None})

        assert outcome.result == NotificationResult.APPLIED

    def test_unknown_payment(self, orchestrator):
        outcome = orchestrator.handle_notification("qris-unknown", "settlement", "ext-unknown", "{}")
        assert outcome.result == NotificationResult.UNKNOWN_PAYMENT
        assert outcome.payment is None

    def test_late_settlement_of_expired_payment_is_honoured(
        self, orchestrator, gateway, make_transaction, backdate_payment
    ):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)
        backdate_payment(code.payment.id)
        orchestrator.get_status(transaction.id)

        outcome = _notify(orchestrator, gateway.settle(code.payment.order_reference))

        assert outcome.result == NotificationResult.APPLIED
        assert outcome.payment.status == PaymentStatus.SUCCESS.value

    def test_late_settlement_conflicting_with_new_payment(
        self, orchestrator, gateway, make_transaction, backdate_payment
    ):
        transaction = make_transaction()
        first = orchestrator.generate_code(transaction.id)
        backdate_payment(first.payment.id)
        second = orchestrator.generate_code(transaction.id)

        outcome = _notify(orchestrator, gateway.settle(first.payment.order_reference))

        assert outcome.result == NotificationResult.CONFLICT
        assert current_domain.repository_for(Payment).get(first.payment.id).status == PaymentStatus.EXPIRED.value
        assert current_domain.repository_for(Payment).get(second.payment.id).status == PaymentStatus.PENDING.value
