"""Midtrans Core API adapter for QRIS charges.

Talks to Midtrans over HTTPS with `requests`:

    POST {base}/v2/charge              payment_type=qris charge
    GET  {base}/v2/{order_id}/status   transaction status
    POST {base}/v2/{order_id}/cancel   void an unpaid charge

Authentication is HTTP Basic with the server key as username and an empty
password. Midtrans reports many rejections with HTTP 200 and a non-2xx
`status_code` inside the JSON body, so both layers are checked.

Notifications are authenticated by `signature_key`:
    sha512(order_id + status_code + gross_amount + server_key)
"""

import hmac
import json

import requests
import structlog

from pos.exceptions import GatewayError
from pos.gateway.port import ChargeRequest, ChargeResult, PaymentGateway, StatusResult
from pos.gateway.signature import notification_signature

logger = structlog.get_logger(__name__)

SANDBOX_BASE_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_BASE_URL = "https://api.midtrans.com"

# Body-level status codes Midtrans uses for an accepted request. The status
# endpoint answers 201 for pending charges and 407 for expired ones.
_CHARGE_OK = {"200", "201"}
_STATUS_OK = {"200", "201", "202", "407"}
_CANCEL_OK = {"200"}


class MidtransGateway(PaymentGateway):
    """Production/sandbox Midtrans gateway adapter."""

    def __init__(
        self,
        server_key: str,
        environment: str = "sandbox",
        default_timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        if not server_key:
            raise ValueError("MidtransGateway requires a server key")
        self.server_key = server_key
        self.environment = environment
        self.base_url = PRODUCTION_BASE_URL if environment == "production" else SANDBOX_BASE_URL
        self.default_timeout = default_timeout
        self.session = session or requests.Session()
        self.session.auth = (server_key, "")
        self.session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})

    # -------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------
    def _call(self, method: str, path: str, order_reference: str, timeout: float | None, payload=None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                data=json.dumps(payload) if payload is not None else None,
                timeout=timeout or self.default_timeout,
            )
        except requests.Timeout as exc:
            raise GatewayError(f"Midtrans timed out on {method} {path}", order_reference=order_reference) from exc
        except requests.RequestException as exc:
            raise GatewayError(
                f"Midtrans unreachable on {method} {path}: {exc}", order_reference=order_reference
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Midtrans returned a non-JSON response (HTTP {response.status_code})",
                order_reference=order_reference,
                status_code=str(response.status_code),
            ) from exc

        if response.status_code >= 400:
            raise GatewayError(
                f"Midtrans rejected {method} {path}: {body.get('status_message', response.reason)}",
                order_reference=order_reference,
                status_code=str(body.get("status_code") or response.status_code),
            )
        return body

    @staticmethod
    def _check_body(body: dict, accepted: set[str], order_reference: str, action: str) -> None:
        status_code = str(body.get("status_code", ""))
        if status_code not in accepted:
            raise GatewayError(
                f"Midtrans {action} failed ({status_code}): {body.get('status_message', 'no message')}",
                order_reference=order_reference,
                status_code=status_code,
            )

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def request_charge(self, request: ChargeRequest, *, timeout: float | None = None) -> ChargeResult:
        payload = {
            "payment_type": "qris",
            "transaction_details": {
                "order_id": request.order_reference,
                "gross_amount": request.gross_amount,
            },
            "item_details": [
                {"id": item.id, "name": item.name[:50], "price": item.price, "quantity": item.quantity}
                for item in request.line_items
            ],
            "customer_details": {
                "first_name": request.customer.name or "",
                "email": request.customer.email or "",
                "phone": request.customer.phone or "",
            },
        }
        if request.expiry_minutes:
            payload["custom_expiry"] = {"expiry_duration": request.expiry_minutes, "unit": "minute"}

        body = self._call("POST", "/v2/charge", request.order_reference, timeout, payload)
        self._check_body(body, _CHARGE_OK, request.order_reference, "charge")

        qr_payload = body.get("qr_string")
        if not qr_payload:
            raise GatewayError("Midtrans charge response carried no qr_string", order_reference=request.order_reference)

        verification_url = None
        actions = body.get("actions") or []
        if actions and isinstance(actions[0], dict):
            verification_url = actions[0].get("url")

        logger.info(
            "midtrans_charge_created",
            order_reference=request.order_reference,
            external_reference=body.get("transaction_id"),
            gross_amount=request.gross_amount,
        )
        return ChargeResult(
            external_reference=body.get("transaction_id", ""),
            qr_payload=qr_payload,
            verification_url=verification_url,
            raw_response=json.dumps(body),
        )

    def check_status(self, order_reference: str, *, timeout: float | None = None) -> StatusResult:
        body = self._call("GET", f"/v2/{order_reference}/status", order_reference, timeout)
        self._check_body(body, _STATUS_OK, order_reference, "status check")

        external_status = body.get("transaction_status", "")
        return StatusResult(
            status=self.interpret_status(external_status),
            external_status=external_status,
            external_reference=body.get("transaction_id"),
            message=body.get("status_message"),
            raw_response=json.dumps(body),
        )

    def cancel_charge(self, order_reference: str, *, timeout: float | None = None) -> None:
        body = self._call("POST", f"/v2/{order_reference}/cancel", order_reference, timeout)
        self._check_body(body, _CANCEL_OK, order_reference, "cancel")
        logger.info("midtrans_charge_cancelled", order_reference=order_reference)

    def verify_notification(self, payload: dict) -> bool:
        signature = payload.get("signature_key")
        if not signature:
            return False
        expected = notification_signature(
            str(payload.get("order_id", "")),
            str(payload.get("status_code", "")),
            str(payload.get("gross_amount", "")),
            self.server_key,
        )
        return hmac.compare_digest(expected, str(signature))
