from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from pos.gateway.fake_adapter import FakeGateway
from pos.payment.orchestrator import PaymentOrchestrator
from pos.payment.payment import Payment
from pos.product.product import Product
from pos.transaction.transaction import Transaction


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def orchestrator(gateway):
    return PaymentOrchestrator(gateway, default_expiry_minutes=10, gateway_timeout=5.0)


@pytest.fixture()
def make_product():
    def _make(name="Kopi Susu", price=10000, stock=50, is_active=True):
        product = Product(name=name, sku=name.upper().replace(" ", "-"), price=price, stock=stock, is_active=is_active)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_transaction(make_product):
    """Persist a pending transaction. `lines` is a list of (price, quantity)."""

    def _make(lines=((10000, 2), (5000, 1)), tax_rate=None, discount=None):
        transaction = Transaction.create(owner_id="cashier-001", customer_name="Budi")
        for index, (price, quantity) in enumerate(lines):
            product = make_product(name=f"Item {index}", price=price)
            transaction.add_item(product, quantity)
        if discount:
            transaction.apply_discount(discount)
        if tax_rate is not None:
            transaction.apply_tax(tax_rate)
        current_domain.repository_for(Transaction).add(transaction)
        return transaction

    return _make


@pytest.fixture()
def backdate_payment():
    """Move a payment's expiry into the past."""

    def _backdate(payment_id, minutes=1):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(payment_id)
        payment.expires_at = datetime.now(UTC) - timedelta(minutes=minutes)
        repo.add(payment)
        return payment

    return _backdate
