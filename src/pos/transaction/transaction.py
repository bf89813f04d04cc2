"""Transaction aggregate: the checkout cart a QR payment is raised against.

A transaction collects line items while it is pending. Each line snapshots the
product's name and unit price at the moment it is rung up, so catalogue price
changes never alter an open cart. All money is held in integer minor units.

State Machine:
    PENDING → PAID        (payment settled)
    PENDING → CANCELLED   (cashier or payment cancellation)
    PENDING → EXPIRED

Totals:
    subtotal     = Σ line_total
    tax_amount   = round_half_up((subtotal - discount) × tax_rate / 100)
    total_amount = subtotal - discount + tax_amount
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from pos.domain import pos
from pos.exceptions import InvalidState
from pos.transaction.events import (
    TransactionCancelled,
    TransactionCreated,
    TransactionExpired,
    TransactionItemAdded,
    TransactionItemQuantityUpdated,
    TransactionItemRemoved,
    TransactionPaid,
    TransactionTotalsAdjusted,
)


class TransactionStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


def compute_tax(taxable: int, rate: float | None) -> int:
    """Tax on `taxable` minor units at `rate` percent, rounded half up."""
    if not rate:
        return 0
    amount = Decimal(taxable) * Decimal(str(rate)) / Decimal(100)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@pos.entity(part_of="Transaction")
class TransactionItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    unit_price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    line_total = Integer(default=0)
    added_at = DateTime()


@pos.aggregate
class Transaction:
    owner_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    items = HasMany(TransactionItem)
    subtotal = Integer(default=0)
    discount = Integer(default=0, min_value=0)
    tax_rate = Float()
    tax_amount = Integer(default=0)
    total_amount = Integer(default=0)
    status = String(choices=TransactionStatus, default=TransactionStatus.PENDING.value)
    notes = Text()
    created_at = DateTime()
    updated_at = DateTime()
    deleted_at = DateTime()

    @invariant.post
    def discount_cannot_exceed_subtotal(self):
        if (self.discount or 0) > (self.subtotal or 0):
            raise ValidationError({"discount": ["Discount cannot exceed the subtotal"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_id, customer_name=None, customer_email=None, notes=None):
        now = datetime.now(UTC)
        transaction = cls(
            owner_id=owner_id,
            customer_name=customer_name,
            customer_email=customer_email,
            notes=notes,
            status=TransactionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        transaction.raise_(
            TransactionCreated(
                transaction_id=str(transaction.id),
                owner_id=str(owner_id),
                created_at=now,
            )
        )
        return transaction

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING.value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": [f"Item {item_id} not found in transaction"]})
        return item

    # -------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------
    def _assert_pending(self, action: str) -> None:
        if not self.is_pending:
            raise InvalidState(f"Cannot {action} a {self.status} transaction")

    def add_item(self, product, quantity: int):
        """Ring up `quantity` of `product`, merging into a line at the same price."""
        self._assert_pending("add items to")
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
        if not product.is_available():
            raise ValidationError({"product_id": [f"Product {product.name} is not available"]})

        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product.id) and i.unit_price == product.price
            ),
            None,
        )
        requested = quantity + (existing.quantity if existing else 0)
        if not product.can_fulfill(requested):
            raise ValidationError({"quantity": [f"Insufficient stock for {product.name}"]})

        now = datetime.now(UTC)
        if existing:
            existing.quantity = requested
            existing.line_total = existing.unit_price * requested
            item = existing
        else:
            item = TransactionItem(
                product_id=product.id,
                product_name=product.name,
                unit_price=product.price,
                quantity=quantity,
                line_total=product.price * quantity,
                added_at=now,
            )
            self.add_items(item)

        self._recalculate(now)
        self.raise_(
            TransactionItemAdded(
                transaction_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product.id),
                unit_price=item.unit_price,
                quantity=item.quantity,
                total_amount=self.total_amount,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity: int) -> None:
        self._assert_pending("change items on")
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

        item = self.find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = quantity
        item.line_total = item.unit_price * quantity

        self._recalculate(datetime.now(UTC))
        self.raise_(
            TransactionItemQuantityUpdated(
                transaction_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
                total_amount=self.total_amount,
            )
        )

    def remove_item(self, item_id) -> None:
        self._assert_pending("remove items from")
        item = self.find_item(item_id)
        self.remove_items(item)

        self._recalculate(datetime.now(UTC))
        self.raise_(
            TransactionItemRemoved(
                transaction_id=str(self.id),
                item_id=str(item_id),
                total_amount=self.total_amount,
            )
        )

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def apply_discount(self, amount: int) -> None:
        self._assert_pending("discount")
        if amount is None or amount < 0:
            raise ValidationError({"discount": ["Discount cannot be negative"]})
        if amount > self._items_subtotal():
            raise ValidationError({"discount": ["Discount cannot exceed the subtotal"]})

        self.discount = amount
        self._recalculate(datetime.now(UTC))
        self._raise_totals_adjusted()

    def apply_tax(self, rate: float) -> None:
        """Set the tax rate (percent) applied to subtotal minus discount."""
        self._assert_pending("tax")
        if rate is None or rate < 0:
            raise ValidationError({"tax_rate": ["Tax rate cannot be negative"]})

        self.tax_rate = rate
        self._recalculate(datetime.now(UTC))
        self._raise_totals_adjusted()

    def _items_subtotal(self) -> int:
        return sum(item.unit_price * item.quantity for item in self.items)

    def _recalculate(self, now) -> None:
        self.subtotal = self._items_subtotal()
        discount = self.discount or 0
        self.tax_amount = compute_tax(self.subtotal - discount, self.tax_rate)
        self.total_amount = self.subtotal - discount + self.tax_amount
        self.updated_at = now

    def _raise_totals_adjusted(self) -> None:
        self.raise_(
            TransactionTotalsAdjusted(
                transaction_id=str(self.id),
                discount=self.discount or 0,
                tax_rate=self.tax_rate,
                tax_amount=self.tax_amount,
                total_amount=self.total_amount,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def cancel(self, reason: str | None = None) -> None:
        if not self.is_pending:
            raise InvalidState("Only pending transactions can be cancelled")

        now = datetime.now(UTC)
        self.status = TransactionStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(
            TransactionCancelled(
                transaction_id=str(self.id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def mark_paid(self, paid_at=None) -> None:
        if not self.is_pending:
            raise InvalidState("Only pending transactions can be marked as paid")

        paid_at = paid_at or datetime.now(UTC)
        self.status = TransactionStatus.PAID.value
        self.updated_at = paid_at
        self.raise_(
            TransactionPaid(
                transaction_id=str(self.id),
                total_amount=self.total_amount,
                paid_at=paid_at,
            )
        )

    def mark_expired(self) -> None:
        if not self.is_pending:
            raise InvalidState("Only pending transactions can be marked as expired")

        now = datetime.now(UTC)
        self.status = TransactionStatus.EXPIRED.value
        self.updated_at = now
        self.raise_(TransactionExpired(transaction_id=str(self.id), expired_at=now))

    def soft_delete(self) -> None:
        if self.is_deleted:
            raise InvalidState("Transaction is already deleted", field="deleted_at")
        now = datetime.now(UTC)
        self.deleted_at = now
        self.updated_at = now
