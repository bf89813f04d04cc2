"""Integration tests for the QRIS payment endpoints and the processor webhook."""

from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from pos.api.application import create_app
from pos.config import Settings
from pos.gateway.signature import notification_signature
from pos.payment.orchestrator import PaymentOrchestrator


def _generate(client, transaction_id, **extra):
    return client.post("/payments/qris/generate", json={"transaction_id": transaction_id, **extra})


class TestGenerate:
    def test_generate_returns_code(self, client, open_transaction):
        transaction_id = open_transaction()

        response = _generate(client, transaction_id)

        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == 25000
        assert data["status"] == "pending"
        assert data["qr_code"]
        assert data["reused"] is False

    def test_second_call_reuses_code(self, client, open_transaction):
        transaction_id = open_transaction()
        first = _generate(client, transaction_id).json()

        second = _generate(client, transaction_id).json()

        assert second["payment_id"] == first["payment_id"]
        assert second["reused"] is True

    def test_amount_mismatch_is_400(self, client, open_transaction):
        response = _generate(client, open_transaction(), amount=1)
        assert response.status_code == 400

    def test_processor_rejection_is_502(self, client, gateway, open_transaction):
        gateway.configure(should_succeed=False, failure_reason="Merchant suspended")

        response = _generate(client, open_transaction())

        assert response.status_code == 502
        assert "Merchant suspended" in response.json()["error"]["payment"][0]

    def test_unknown_transaction_is_404(self, client):
        assert _generate(client, "ghost").status_code == 404


class TestNotificationWebhook:
    def test_signed_settlement_applies(self, client, gateway, open_transaction):
        transaction_id = open_transaction()
        code = _generate(client, transaction_id).json()
        notification = gateway.settle(code["order_reference"])

        response = client.post("/payments/notifications", json=notification)

        assert response.status_code == 200
        assert response.json()["status"] == "applied"
        assert client.get(f"/transactions/{transaction_id}").json()["status"] == "paid"

    def test_replay_answers_unchanged(self, client, gateway, open_transaction):
        code = _generate(client, open_transaction()).json()
        notification = gateway.settle(code["order_reference"])
        client.post("/payments/notifications", json=notification)

        response = client.post("/payments/notifications", json=notification)

        assert response.json()["status"] == "unchanged"

    def test_bad_signature_is_401(self, client, gateway, open_transaction):
        code = _generate(client, open_transaction()).json()
        notification = {**gateway.settle(code["order_reference"]), "signature_key": "forged"}

        response = client.post("/payments/notifications", json=notification)

        assert response.status_code == 401

    def test_missing_fields_is_400(self, client):
        response = client.post("/payments/notifications", json={"transaction_status": "settlement"})
        assert response.status_code == 400

    def test_invalid_json_is_400(self, client):
        response = client.post(
            "/payments/notifications",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_unknown_order_is_acknowledged(self, client, gateway):
        notification = {
            "order_id": "qris-unknown",
            "transaction_status": "settlement",
            "status_code": "200",
            "gross_amount": "25000.00",
            "signature_key": notification_signature("qris-unknown", "200", "25000.00", gateway.server_key),
        }

        response = client.post("/payments/notifications", json=notification)

        assert response.status_code == 200
        assert response.json()["status"] == "unknown_payment"


class TestStatusRefreshCancel:
    def test_status_after_simulated_payment(self, client, open_transaction):
        transaction_id = open_transaction()
        code = _generate(client, transaction_id).json()

        simulated = client.post("/payments/gateway/simulate", json={"order_reference": code["order_reference"]})
        assert simulated.json()["result"] == "applied"

        status = client.get(f"/payments/{transaction_id}/status").json()
        assert status["status"] == "success"
        assert status["transaction_status"] == "paid"

    def test_status_without_payment_is_404(self, client, open_transaction):
        assert client.get(f"/payments/{open_transaction()}/status").status_code == 404

    def test_refresh_issues_new_code(self, client, open_transaction):
        transaction_id = open_transaction()
        first = _generate(client, transaction_id).json()

        refreshed = client.post(f"/payments/{transaction_id}/refresh", json={"expiry_minutes": 5})

        assert refreshed.status_code == 200
        assert refreshed.json()["order_reference"] != first["order_reference"]

    def test_cancel(self, client, open_transaction):
        transaction_id = open_transaction()
        _generate(client, transaction_id)

        response = client.post(f"/payments/{transaction_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["transaction_status"] == "cancelled"

    def test_cancel_refused_by_processor_is_502(self, client, gateway, open_transaction):
        transaction_id = open_transaction()
        code = _generate(client, transaction_id).json()
        gateway.settle(code["order_reference"])

        response = client.post(f"/payments/{transaction_id}/cancel")

        assert response.status_code == 502


class TestGatewayControls:
    def test_configure(self, client):
        response = client.post("/payments/gateway/configure", json={"should_succeed": False})
        assert response.status_code == 200
        assert response.json()["should_succeed"] is False

    def test_simulate_unknown_order_is_404(self, client):
        response = client.post("/payments/gateway/simulate", json={"order_reference": "qris-nope"})
        assert response.status_code == 404

    def test_refused_in_production(self, gateway):
        app = create_app(settings=Settings(environment="production"), orchestrator=PaymentOrchestrator(gateway))
        client = TestClient(app)
        response = client.post("/payments/gateway/configure", json={})
        assert response.status_code == 403


class TestMaintenance:
    def test_expire_sweep(self, client, open_transaction):
        transaction_id = open_transaction()
        _generate(client, transaction_id)

        response = client.post(
            "/maintenance/payments/expire",
            json={"as_of": (datetime.now(UTC) + timedelta(hours=1)).isoformat()},
        )

        assert response.status_code == 200
        assert response.json()["expired"] == 1

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["gateway"] == "FakeGateway"
