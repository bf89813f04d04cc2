"""Processor notification signatures.

    signature_key = sha512(order_id + status_code + gross_amount + server_key)
"""

import hashlib


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()
