"""Tests for the expiry sweep command."""

from datetime import UTC, datetime, timedelta

from protean import current_domain

from pos.payment.expiry import ExpireStalePayments
from pos.payment.payment import Payment
from pos.payment.status import PaymentStatus
from pos.transaction.transaction import Transaction, TransactionStatus


class TestExpireStalePayments:
    def test_expires_only_lapsed_pending_payments(self, orchestrator, make_transaction, backdate_payment):
        stale = orchestrator.generate_code(make_transaction().id)
        fresh = orchestrator.generate_code(make_transaction().id)
        backdate_payment(stale.payment.id)

        expired = current_domain.process(ExpireStalePayments(), asynchronous=False)

        repo = current_domain.repository_for(Payment)
        assert expired == 1
        assert repo.get(stale.payment.id).status == PaymentStatus.EXPIRED.value
        assert repo.get(fresh.payment.id).status == PaymentStatus.PENDING.value

    def test_as_of_in_the_future(self, orchestrator, make_transaction):
        code = orchestrator.generate_code(make_transaction().id)

        expired = current_domain.process(
            ExpireStalePayments(as_of=datetime.now(UTC) + timedelta(hours=1)),
            asynchronous=False,
        )

        assert expired == 1
        assert current_domain.repository_for(Payment).get(code.payment.id).status == PaymentStatus.EXPIRED.value

    def test_transactions_stay_pending(self, orchestrator, make_transaction, backdate_payment):
        transaction = make_transaction()
        code = orchestrator.generate_code(transaction.id)
        backdate_payment(code.payment.id)

        current_domain.process(ExpireStalePayments(), asynchronous=False)

        stored = current_domain.repository_for(Transaction).get(transaction.id)
        assert stored.status == TransactionStatus.PENDING.value
