"""Point-of-sale bounded context: cart checkout and QRIS payments.

Handles the cashier's cart (Transaction aggregate), fixed-amount QR payment
generation against an external processor, and reconciliation of payment
status through polling and processor notifications.

Persistence is configured in `domain.toml`: the memory provider by default,
PostgreSQL under the `production` overlay.
"""

from protean.domain import Domain

from pos.utils.logging import configure_logging

configure_logging()

# Domain Composition Root
pos = Domain(name="pos")
