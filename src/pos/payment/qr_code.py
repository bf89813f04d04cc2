"""QRCode aggregate: the scannable artifact behind a payment.

The code is the processor's opaque QRIS payload; it is stored and handed to
clients, never parsed. Exactly one row exists per payment and a refresh
rewrites it in place.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String, Text

from pos.domain import pos


@pos.aggregate
class QRCode:
    transaction_id = Identifier(required=True)
    payment_id = Identifier(required=True, unique=True)
    code = Text(required=True)
    verification_url = String(max_length=500)
    expires_at = DateTime(required=True)
    created_at = DateTime()
    updated_at = DateTime()
    deleted_at = DateTime()

    @classmethod
    def create(cls, transaction_id, payment_id, code, verification_url, expires_at):
        now = datetime.now(UTC)
        return cls(
            transaction_id=transaction_id,
            payment_id=payment_id,
            code=code,
            verification_url=verification_url,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )

    def replace(self, code: str, verification_url: str | None, expires_at: datetime) -> None:
        self.code = code
        self.verification_url = verification_url
        self.expires_at = expires_at
        self.updated_at = datetime.now(UTC)
