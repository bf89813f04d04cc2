"""Transaction cancellation and deletion: commands and handler.

A transaction with a pending QR payment cannot be cancelled or deleted here:
the customer could still settle that charge. Cancelling the payment (which
also voids it at the processor) cancels the transaction with it.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from pos.domain import pos
from pos.exceptions import InvalidState
from pos.payment.payment import Payment
from pos.transaction.transaction import Transaction


@pos.command(part_of="Transaction")
class CancelTransaction:
    transaction_id = Identifier(required=True)
    reason = String(max_length=500)


@pos.command(part_of="Transaction")
class DeleteTransaction:
    transaction_id = Identifier(required=True)


def _assert_no_pending_payment(transaction_id) -> None:
    payment = current_domain.repository_for(Payment).find_for_transaction(transaction_id)
    if payment is not None and payment.is_pending:
        raise InvalidState(
            f"Transaction {transaction_id} has a pending payment; cancel the payment instead",
            field="payment",
        )


@pos.command_handler(part_of=Transaction)
class CancelTransactionHandler:
    @handle(CancelTransaction)
    def cancel_transaction(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        _assert_no_pending_payment(transaction.id)
        transaction.cancel(reason=command.reason)
        repo.add(transaction)

    @handle(DeleteTransaction)
    def delete_transaction(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get_live(command.transaction_id)
        _assert_no_pending_payment(transaction.id)
        transaction.soft_delete()
        repo.add(transaction)
