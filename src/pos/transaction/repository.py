"""Repository for the Transaction aggregate.

Soft-deleted transactions are invisible to every read in this context, so all
lookups go through here instead of the bare `get`.
"""

from protean.exceptions import ObjectNotFoundError

from pos.domain import pos
from pos.exceptions import TransactionNotFound
from pos.transaction.transaction import Transaction


@pos.repository(part_of=Transaction)
class TransactionRepository:
    def get_live(self, transaction_id) -> Transaction:
        """Fetch a transaction that has not been soft-deleted."""
        try:
            transaction = self.get(transaction_id)
        except ObjectNotFoundError as exc:
            raise TransactionNotFound(str(transaction_id)) from exc

        if transaction.deleted_at is not None:
            raise TransactionNotFound(str(transaction_id))
        return transaction

    def find_live(self, owner_id=None, status=None, limit: int = 50, offset: int = 0) -> list[Transaction]:
        filters = {}
        if owner_id:
            filters["owner_id"] = str(owner_id)
        if status:
            filters["status"] = status

        query = self._dao.query.filter(**filters) if filters else self._dao.query
        results = [t for t in query.all().items if t.deleted_at is None]
        results.sort(key=lambda t: t.created_at, reverse=True)
        return results[offset : offset + limit]
