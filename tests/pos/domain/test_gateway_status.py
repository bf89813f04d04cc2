"""Tests for mapping processor status words to payment statuses."""

import pytest

from pos.gateway.status import interpret_external_status
from pos.payment.status import PaymentStatus


@pytest.mark.parametrize(
    "external, internal",
    [
        ("settlement", PaymentStatus.SUCCESS),
        ("capture", PaymentStatus.SUCCESS),
        ("pending", PaymentStatus.PENDING),
        ("deny", PaymentStatus.FAILED),
        ("cancel", PaymentStatus.FAILED),
        ("expire", PaymentStatus.FAILED),
        ("SETTLEMENT", PaymentStatus.SUCCESS),
        ("authorize", PaymentStatus.PENDING),
        ("", PaymentStatus.PENDING),
        (None, PaymentStatus.PENDING),
    ],
)
def test_interpret_external_status(external, internal):
    assert interpret_external_status(external) == internal
