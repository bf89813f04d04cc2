"""Expiry sweep: command and handler.

Triggered periodically by an external scheduler. Marks every pending payment
whose code has lapsed as expired so the transaction's slot is released
without waiting for a client to poll. Transactions are left pending: the
cashier may issue a fresh code.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from pos.domain import pos
from pos.payment.payment import Payment

logger = structlog.get_logger(__name__)


@pos.command(part_of="Payment")
class ExpireStalePayments:
    as_of = DateTime()


@pos.command_handler(part_of=Payment)
class ExpireStalePaymentsHandler:
    @handle(ExpireStalePayments)
    def expire_stale_payments(self, command):
        as_of = command.as_of or datetime.now(UTC)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=UTC)

        repo = current_domain.repository_for(Payment)
        expired = 0
        for payment in repo.find_stale_pending(as_of):
            payment.mark_expired()
            repo.persist(payment)
            expired += 1

        logger.info("stale_payments_expired", count=expired, as_of=as_of.isoformat())
        return expired
