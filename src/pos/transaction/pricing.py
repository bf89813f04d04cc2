"""Discount and tax adjustments: commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, Integer
from protean.utils.globals import current_domain

from pos.domain import pos
from pos.transaction.transaction import Transaction


@pos.command(part_of="Transaction")
class ApplyTransactionDiscount:
    transaction_id = Identifier(required=True)
    amount = Integer(required=True, min_value=0)


@pos.command(part_of="Transaction")
class ApplyTransactionTax:
    transaction_id = Identifier(required=True)
    rate = Float(required=True, min_value=0.0)  # percent


@pos.command_handler(part_of=Transaction)
class AdjustTransactionTotalsHandler:
    @handle(ApplyTransactionDiscount)
    def apply_discount(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        transaction.apply_discount(command.amount)
        repo.add(transaction)

    @handle(ApplyTransactionTax)
    def apply_tax(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        transaction.apply_tax(command.rate)
        repo.add(transaction)
