"""Transaction creation: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from pos.domain import pos
from pos.product.product import load_product
from pos.transaction.transaction import Transaction


@pos.command(part_of="Transaction")
class CreateTransaction:
    owner_id = Identifier(required=True)
    items = Text()  # JSON: list of {"product_id", "quantity"}
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    notes = Text()


@pos.command_handler(part_of=Transaction)
class CreateTransactionHandler:
    @handle(CreateTransaction)
    def create_transaction(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        if items_data is not None and not isinstance(items_data, list):
            raise ValidationError({"items": ["Items must be a list"]})

        transaction = Transaction.create(
            owner_id=command.owner_id,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            notes=command.notes,
        )
        for line in items_data or []:
            product = load_product(line["product_id"])
            transaction.add_item(product, int(line["quantity"]))

        current_domain.repository_for(Transaction).add(transaction)
        return str(transaction.id)
