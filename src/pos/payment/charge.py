"""Building the processor charge from a transaction.

The processor re-adds the item list and rejects any charge whose items do not
sum to the gross amount, so tax and discount travel as pseudo-items and the
list is reconciled against the transaction total before any call is made.
"""

from datetime import datetime
from uuid import uuid4

from pos.gateway.port import Customer, LineItem

ORDER_REFERENCE_MAX_LENGTH = 50
TAX_ITEM_ID = "TAX"
DISCOUNT_ITEM_ID = "DISCOUNT"


def build_order_reference(transaction_id, now: datetime) -> str:
    """Short processor order id: `qris-<8 of txn id>-<unix ts>-<6 hex>`."""
    prefix = str(transaction_id).replace("-", "")[:8]
    reference = f"qris-{prefix}-{int(now.timestamp())}-{uuid4().hex[:6]}"
    return reference[:ORDER_REFERENCE_MAX_LENGTH]


def build_line_items(transaction) -> list[LineItem]:
    items = [
        LineItem(
            id=str(item.product_id),
            name=item.product_name or "Item",
            price=item.unit_price,
            quantity=item.quantity,
        )
        for item in transaction.items
    ]
    if transaction.tax_amount and transaction.tax_amount > 0:
        items.append(LineItem(id=TAX_ITEM_ID, name="Tax", price=transaction.tax_amount, quantity=1))
    if transaction.discount and transaction.discount > 0:
        items.append(LineItem(id=DISCOUNT_ITEM_ID, name="Discount", price=-transaction.discount, quantity=1))
    return items


def line_items_total(items: list[LineItem]) -> int:
    return sum(item.amount for item in items)


def customer_for(transaction) -> Customer:
    return Customer(name=transaction.customer_name, email=transaction.customer_email)
