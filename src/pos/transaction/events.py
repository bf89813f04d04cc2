"""Domain events for the Transaction aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from pos.domain import pos


@pos.event(part_of="Transaction")
class TransactionCreated:
    """A cashier opened a new checkout transaction."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    created_at = DateTime(required=True)


@pos.event(part_of="Transaction")
class TransactionItemAdded:
    """A product was rung up on the transaction (or an existing line grew)."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    unit_price = Integer(required=True)
    quantity = Integer(required=True)
    total_amount = Integer(required=True)


@pos.event(part_of="Transaction")
class TransactionItemQuantityUpdated:
    __version__ = 1

    transaction_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    total_amount = Integer(required=True)


@pos.event(part_of="Transaction")
class TransactionItemRemoved:
    __version__ = 1

    transaction_id = Identifier(required=True)
    item_id = Identifier(required=True)
    total_amount = Integer(required=True)


@pos.event(part_of="Transaction")
class TransactionTotalsAdjusted:
    """Discount or tax rate changed, so the payable total moved."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    discount = Integer(required=True)
    tax_rate = Float()
    tax_amount = Integer(required=True)
    total_amount = Integer(required=True)


@pos.event(part_of="Transaction")
class TransactionPaid:
    __version__ = 1

    transaction_id = Identifier(required=True)
    total_amount = Integer(required=True)
    paid_at = DateTime(required=True)


@pos.event(part_of="Transaction")
class TransactionCancelled:
    __version__ = 1

    transaction_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)


@pos.event(part_of="Transaction")
class TransactionExpired:
    __version__ = 1

    transaction_id = Identifier(required=True)
    expired_at = DateTime(required=True)
