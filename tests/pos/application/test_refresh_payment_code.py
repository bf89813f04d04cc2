"""Tests for refreshing a payment's QR code in place."""

import pytest
from protean import current_domain

from pos.exceptions import InvalidState, PaymentNotFound
from pos.payment.payment import Payment
from pos.payment.qr_code import QRCode
from pos.payment.status import PaymentStatus


def _rows(aggregate, transaction_id):
    return current_domain.repository_for(aggregate)._dao.query.filter(transaction_id=str(transaction_id)).all().items


class TestRefreshCode:
    def test_expired_payment_is_reissued_in_place(self, orchestrator, make_transaction, backdate_payment):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)
        backdate_payment(code.payment.id)
        orchestrator.get_status(transaction.id)

        refreshed = orchestrator.refresh_code(transaction.id)

        assert refreshed.payment.id == code.payment.id
        assert refreshed.qr_code.id == code.qr_code.id
        assert refreshed.payment.status == PaymentStatus.PENDING.value
        assert refreshed.payment.order_reference != code.payment.order_reference
        assert refreshed.payment.external_reference is None
        assert refreshed.qr_code.code != code.qr_code.code
        assert refreshed.qr_code.expires_at == refreshed.payment.expires_at
        assert len(_rows(Payment, transaction.id)) == 1
        assert len(_rows(QRCode, transaction.id)) == 1

    def test_pending_payment_refresh_voids_previous_charge(self, orchestrator, gateway, make_transaction):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)

        refreshed = orchestrator.refresh_code(transaction.id, expiry_minutes=5)

        assert refreshed.payment.id == code.payment.id
        assert [c["order_reference"] for c in gateway.calls_to("cancel_charge")] == [code.payment.order_reference]

    def test_settled_payment_cannot_be_refreshed(self, orchestrator, gateway, make_transaction):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)
        gateway.settle(code.payment.order_reference)
        orchestrator.get_status(transaction.id)

        with pytest.raises(InvalidState):
            orchestrator.refresh_code(transaction.id)

    def test_failed_payment_cannot_be_refreshed(self, orchestrator, gateway, make_transaction):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)
        gateway.settle(code.payment.order_reference, "deny")
        orchestrator.get_status(transaction.id)

        with pytest.raises(InvalidState):
            orchestrator.refresh_code(transaction.id)

    def test_no_payment(self, orchestrator, make_transaction):
        with pytest.raises(PaymentNotFound):
            orchestrator.refresh_code(make_transaction().id)


class TestRefreshExpiry:
    def test_default_expiry_applies_for_non_positive_minutes(self, orchestrator, gateway, make_transaction):
        transaction = make_transaction()
        orchestrator.generate_code(transaction.id, expiry_minutes=3)

        refreshed = orchestrator.refresh_code(transaction.id, expiry_minutes=-1)

        lifetime = refreshed.payment.expires_at - refreshed.payment.updated_at
        assert 9 * 60 < lifetime.total_seconds() <= 10 * 60
        assert gateway.calls_to("request_charge")[-1]["expiry_minutes"] == 10
