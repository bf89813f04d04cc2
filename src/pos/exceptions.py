"""Error taxonomy for the POS domain.

Missing records and invalid state reuse Protean's exception vocabulary so the
framework's FastAPI handlers and command processing treat them uniformly.
Gateway failures and storage conflicts are plain exceptions: they never
originate inside the domain model.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class TransactionNotFound(ObjectNotFoundError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        self.detail = f"Transaction {transaction_id} does not exist"
        super().__init__({"transaction_id": [self.detail]})


class PaymentNotFound(ObjectNotFoundError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        self.detail = f"No payment exists for transaction {transaction_id}"
        super().__init__({"transaction_id": [self.detail]})


class InvalidState(ValidationError):
    """Operation not valid for the current status of a transaction or payment."""

    def __init__(self, message: str, field: str = "status") -> None:
        self.detail = message
        super().__init__({field: [message]})


class GatewayError(Exception):
    """The payment processor was unreachable, timed out, or rejected the call."""

    def __init__(self, message: str, order_reference: str | None = None, status_code: str | None = None) -> None:
        self.detail = message
        self.order_reference = order_reference
        self.status_code = status_code
        super().__init__(message)


class PaymentGenerationFailed(Exception):
    """A QR payment code could not be produced for a transaction."""

    def __init__(self, message: str, transaction_id: str) -> None:
        self.detail = message
        self.transaction_id = transaction_id
        super().__init__(message)


class ConstraintViolation(Exception):
    """A write was refused by a storage-level uniqueness constraint."""

    def __init__(self, constraint: str, value: str) -> None:
        self.constraint = constraint
        self.value = value
        super().__init__(f"{constraint} violated for {value}")
