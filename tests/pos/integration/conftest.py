import pytest
from fastapi.testclient import TestClient

from pos.api.application import create_app
from pos.config import Settings
from pos.payment.orchestrator import PaymentOrchestrator


@pytest.fixture()
def client(gateway):
    app = create_app(settings=Settings(environment="test"), orchestrator=PaymentOrchestrator(gateway))
    return TestClient(app)


@pytest.fixture()
def open_transaction(client, make_product):
    """Create a transaction through the API and return its id."""

    def _open(lines=((10000, 2), (5000, 1))):
        items = []
        for index, (price, quantity) in enumerate(lines):
            product = make_product(name=f"Menu {index}", price=price)
            items.append({"product_id": str(product.id), "quantity": quantity})
        response = client.post("/transactions", json={"owner_id": "cashier-001", "items": items})
        assert response.status_code == 201
        return response.json()["transaction_id"]

    return _open
