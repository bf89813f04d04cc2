"""Product aggregate: the priced, stocked thing a cashier rings up.

Only the fields a cart needs live here: line items snapshot the name and price
at add time, so later edits to a product never alter an open transaction.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Integer, String
from protean.utils.globals import current_domain

from pos.domain import pos


@pos.aggregate
class Product:
    name = String(max_length=255, required=True)
    sku = String(max_length=50)
    price = Integer(required=True, min_value=0)  # minor units
    stock = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    def is_available(self) -> bool:
        return bool(self.is_active) and (self.stock or 0) > 0

    def can_fulfill(self, quantity: int) -> bool:
        return (self.stock or 0) >= quantity


def load_product(product_id) -> Product:
    """Fetch a product for ringing up, reporting a missing one as bad input."""
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError as exc:
        raise ValidationError({"product_id": [f"Product {product_id} does not exist"]}) from exc
