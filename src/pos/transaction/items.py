"""Transaction line item management: commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from pos.domain import pos
from pos.product.product import load_product
from pos.transaction.transaction import Transaction


@pos.command(part_of="Transaction")
class AddTransactionItem:
    transaction_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@pos.command(part_of="Transaction")
class UpdateTransactionItemQuantity:
    transaction_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@pos.command(part_of="Transaction")
class RemoveTransactionItem:
    transaction_id = Identifier(required=True)
    item_id = Identifier(required=True)


@pos.command_handler(part_of=Transaction)
class ManageTransactionItemsHandler:
    @handle(AddTransactionItem)
    def add_item(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        item = transaction.add_item(load_product(command.product_id), command.quantity)
        repo.add(transaction)
        return str(item.id)

    @handle(UpdateTransactionItemQuantity)
    def update_item_quantity(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        transaction.update_item_quantity(command.item_id, command.quantity)
        repo.add(transaction)

    @handle(RemoveTransactionItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        transaction.remove_item(command.item_id)
        repo.add(transaction)
