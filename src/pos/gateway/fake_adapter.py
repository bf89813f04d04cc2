"""Configurable fake QRIS gateway for development and testing.

Simulates the processor without any external calls. Charges are kept in
memory, keyed by order reference, with the processor's own status words so the
same status mapping applies as in production. Useful for:
- Manual API testing via /payments/gateway/configure and /simulate
- Automated tests with predictable outcomes
- Development without Midtrans credentials
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from pos.exceptions import GatewayError
from pos.gateway.port import ChargeRequest, ChargeResult, PaymentGateway, StatusResult
from pos.gateway.signature import notification_signature

# Body-level status_code the processor attaches to each transaction status.
_STATUS_CODES = {
    "settlement": "200",
    "capture": "200",
    "pending": "201",
    "deny": "202",
    "cancel": "200",
    "expire": "407",
    "failure": "202",
}


class FakeGateway(PaymentGateway):
    """Configurable fake QRIS gateway."""

    def __init__(self, server_key: str = "fake-server-key") -> None:
        self.server_key = server_key
        self.should_succeed: bool = True
        self.failure_reason: str = "Charge rejected by processor"
        self.status_available: bool = True
        self.charges: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Charge rejected by processor",
        status_available: bool = True,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.status_available = status_available

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    # -------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------
    def settle(self, order_reference: str, external_status: str = "settlement") -> dict:
        """Move a charge to `external_status`, as if the customer acted on it.

        Returns the notification payload the processor would post, signed.
        """
        charge = self.charges.get(order_reference)
        if charge is None:
            raise GatewayError(f"Unknown charge {order_reference}", order_reference=order_reference)

        charge["transaction_status"] = external_status
        return self.notification_for(order_reference)

    def notification_for(self, order_reference: str) -> dict:
        charge = self.charges[order_reference]
        status_code = _STATUS_CODES.get(charge["transaction_status"], "201")
        gross_amount = f"{charge['gross_amount']}.00"
        return {
            "order_id": order_reference,
            "transaction_id": charge["transaction_id"],
            "transaction_status": charge["transaction_status"],
            "transaction_time": charge["transaction_time"],
            "payment_type": "qris",
            "status_code": status_code,
            "gross_amount": gross_amount,
            "signature_key": notification_signature(order_reference, status_code, gross_amount, self.server_key),
        }

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def request_charge(self, request: ChargeRequest, *, timeout: float | None = None) -> ChargeResult:
        self.calls.append(
            {
                "method": "request_charge",
                "order_reference": request.order_reference,
                "gross_amount": request.gross_amount,
                "expiry_minutes": request.expiry_minutes,
                "line_items": list(request.line_items),
                "timeout": timeout,
            }
        )

        if not self.should_succeed:
            raise GatewayError(self.failure_reason, order_reference=request.order_reference)
        if sum(item.amount for item in request.line_items) != request.gross_amount:
            raise GatewayError(
                "transaction_details.gross_amount is not equal to the sum of item_details",
                order_reference=request.order_reference,
                status_code="400",
            )

        transaction_id = str(uuid4())
        self.charges[request.order_reference] = {
            "transaction_id": transaction_id,
            "gross_amount": request.gross_amount,
            "transaction_status": "pending",
            "transaction_time": datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S"),
        }
        qr_payload = f"00020101021226620014COM.FAKEQRIS0118{request.order_reference}5204581253033605405{request.gross_amount}6304FAKE"
        return ChargeResult(
            external_reference=transaction_id,
            qr_payload=qr_payload,
            verification_url=f"https://simulator.fake-gateway.test/qris/{transaction_id}",
            raw_response=json.dumps({"transaction_id": transaction_id, "transaction_status": "pending"}),
        )

    def check_status(self, order_reference: str, *, timeout: float | None = None) -> StatusResult:
        self.calls.append({"method": "check_status", "order_reference": order_reference, "timeout": timeout})

        if not self.status_available:
            raise GatewayError("Status service unavailable", order_reference=order_reference)
        charge = self.charges.get(order_reference)
        if charge is None:
            raise GatewayError(f"Transaction doesn't exist: {order_reference}", order_reference=order_reference, status_code="404")

        external_status = charge["transaction_status"]
        return StatusResult(
            status=self.interpret_status(external_status),
            external_status=external_status,
            external_reference=charge["transaction_id"],
            message=f"Transaction status is {external_status}",
            raw_response=json.dumps(self.notification_for(order_reference)),
        )

    def cancel_charge(self, order_reference: str, *, timeout: float | None = None) -> None:
        self.calls.append({"method": "cancel_charge", "order_reference": order_reference, "timeout": timeout})

        charge = self.charges.get(order_reference)
        if charge is None:
            raise GatewayError(f"Transaction doesn't exist: {order_reference}", order_reference=order_reference, status_code="404")
        if charge["transaction_status"] != "pending":
            raise GatewayError(
                f"Transaction {order_reference} is {charge['transaction_status']} and cannot be cancelled",
                order_reference=order_reference,
                status_code="412",
            )
        charge["transaction_status"] = "cancel"

    def verify_notification(self, payload: dict) -> bool:
        expected = notification_signature(
            str(payload.get("order_id", "")),
            str(payload.get("status_code", "")),
            str(payload.get("gross_amount", "")),
            self.server_key,
        )
        return payload.get("signature_key") == expected
