"""Tests for transaction commands processed through the domain."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from pos.exceptions import InvalidState, TransactionNotFound
from pos.transaction.cancellation import CancelTransaction, DeleteTransaction
from pos.transaction.creation import CreateTransaction
from pos.transaction.items import AddTransactionItem, RemoveTransactionItem, UpdateTransactionItemQuantity
from pos.transaction.pricing import ApplyTransactionDiscount, ApplyTransactionTax
from pos.transaction.transaction import Transaction, TransactionStatus


def _create(make_product, lines=((10000, 2), (5000, 1))):
    items = []
    for index, (price, quantity) in enumerate(lines):
        product = make_product(name=f"Menu {index}", price=price)
        items.append({"product_id": str(product.id), "quantity": quantity})
    command = CreateTransaction(owner_id="cashier-001", items=json.dumps(items), notes="Meja 3")
    return current_domain.process(command, asynchronous=False)


def _get(transaction_id):
    return current_domain.repository_for(Transaction).get(transaction_id)


class TestCreateTransaction:
    def test_creates_with_items(self, make_product):
        transaction = _get(_create(make_product))
        assert transaction.status == TransactionStatus.PENDING.value
        assert len(transaction.items) == 2
        assert transaction.total_amount == 25000
        assert transaction.notes == "Meja 3"

    def test_unknown_product_rejected(self):
        command = CreateTransaction(owner_id="cashier-001", items=json.dumps([{"product_id": "nope", "quantity": 1}]))
        with pytest.raises(ValidationError):
            current_domain.process(command, asynchronous=False)

    def test_creates_empty_cart(self):
        transaction_id = current_domain.process(CreateTransaction(owner_id="cashier-001"), asynchronous=False)
        assert _get(transaction_id).items == []


class TestItemCommands:
    def test_add_update_remove(self, make_product):
        transaction_id = _create(make_product, lines=())
        product = make_product(name="Bakso", price=15000)

        item_id = current_domain.process(
            AddTransactionItem(transaction_id=transaction_id, product_id=product.id, quantity=1),
            asynchronous=False,
        )
        current_domain.process(
            UpdateTransactionItemQuantity(transaction_id=transaction_id, item_id=item_id, quantity=3),
            asynchronous=False,
        )
        assert _get(transaction_id).total_amount == 45000

        current_domain.process(RemoveTransactionItem(transaction_id=transaction_id, item_id=item_id), asynchronous=False)
        assert _get(transaction_id).items == []

    def test_missing_transaction(self, make_product):
        product = make_product()
        with pytest.raises(TransactionNotFound):
            current_domain.process(
                AddTransactionItem(transaction_id="missing", product_id=product.id, quantity=1),
                asynchronous=False,
            )


class TestPricingCommands:
    def test_discount_and_tax(self, make_product):
        transaction_id = _create(make_product)
        current_domain.process(ApplyTransactionDiscount(transaction_id=transaction_id, amount=5000), asynchronous=False)
        current_domain.process(ApplyTransactionTax(transaction_id=transaction_id, rate=10), asynchronous=False)

        transaction = _get(transaction_id)
        assert transaction.discount == 5000
        assert transaction.tax_amount == 2000
        assert transaction.total_amount == 22000

    def test_removing_item_below_discount_rejected(self, make_product):
        transaction_id = _create(make_product, lines=((10000, 1), (5000, 1)))
        current_domain.process(ApplyTransactionDiscount(transaction_id=transaction_id, amount=12000), asynchronous=False)
        big_item = next(i for i in _get(transaction_id).items if i.unit_price == 10000)

        with pytest.raises(ValidationError):
            current_domain.process(
                RemoveTransactionItem(transaction_id=transaction_id, item_id=big_item.id),
                asynchronous=False,
            )


class TestCancelAndDelete:
    def test_cancel(self, make_product):
        transaction_id = _create(make_product)
        current_domain.process(CancelTransaction(transaction_id=transaction_id, reason="Customer left"), asynchronous=False)
        assert _get(transaction_id).status == TransactionStatus.CANCELLED.value

    def test_cancel_refused_while_payment_pending(self, make_product, orchestrator):
        transaction_id = _create(make_product)
        orchestrator.generate_code(transaction_id)

        with pytest.raises(InvalidState):
            current_domain.process(CancelTransaction(transaction_id=transaction_id), asynchronous=False)

    def test_deleted_transaction_is_invisible(self, make_product):
        transaction_id = _create(make_product)
        current_domain.process(DeleteTransaction(transaction_id=transaction_id), asynchronous=False)

        with pytest.raises(TransactionNotFound):
            current_domain.repository_for(Transaction).get_live(transaction_id)
        assert current_domain.repository_for(Transaction).find_live() == []
