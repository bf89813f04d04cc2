"""Pydantic request/response schemas for the POS API.

These are external contracts (anti-corruption layer), kept separate from
internal Protean commands. Money is always integer minor units (rupiah).
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Transaction Request Schemas
# ---------------------------------------------------------------------------
class TransactionLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class CreateTransactionRequest(BaseModel):
    owner_id: str
    items: list[TransactionLineRequest] = []
    customer_name: str | None = None
    customer_email: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "owner_id": "cashier-001",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "customer_name": "Budi",
                    "notes": "Table 4",
                }
            ]
        }
    }


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class UpdateItemQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyDiscountRequest(BaseModel):
    amount: int = Field(ge=0)


class ApplyTaxRequest(BaseModel):
    rate: float = Field(ge=0)  # percent


class CancelTransactionRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class GeneratePaymentRequest(BaseModel):
    transaction_id: str
    amount: int | None = Field(default=None, gt=0)
    expiry_minutes: int | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"transaction_id": "txn-001", "amount": 27500, "expiry_minutes": 10}]
        }
    }


class RefreshPaymentRequest(BaseModel):
    expiry_minutes: int | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Charge rejected by processor"
    status_available: bool = True


class SimulatePaymentRequest(BaseModel):
    order_reference: str
    transaction_status: str = "settlement"
    notify: bool = True


class ExpirePaymentsRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class TransactionIdResponse(BaseModel):
    transaction_id: str


class ItemIdResponse(BaseModel):
    item_id: str


class StatusResponse(BaseModel):
    status: str


class TransactionItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str | None = None
    unit_price: int
    quantity: int
    line_total: int


class TransactionResponse(BaseModel):
    id: str
    owner_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    status: str
    items: list[TransactionItemResponse]
    subtotal: int
    discount: int
    tax_rate: float | None = None
    tax_amount: int
    total_amount: int
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaymentCodeResponse(BaseModel):
    payment_id: str
    transaction_id: str
    amount: int
    status: str
    order_reference: str
    qr_code_id: str
    qr_code: str
    verification_url: str | None = None
    expires_at: datetime
    reused: bool = False


class PaymentStatusResponse(BaseModel):
    payment_id: str
    transaction_id: str
    amount: int
    status: str
    transaction_status: str
    order_reference: str
    external_reference: str | None = None
    paid_at: datetime | None = None
    expires_at: datetime
    gateway_checked: bool = False
    message: str | None = None


class NotificationResponse(BaseModel):
    status: str


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    status_available: bool


class SimulatePaymentResponse(BaseModel):
    notification: dict
    delivered: bool
    result: str | None = None


class ExpirePaymentsResponse(BaseModel):
    expired: int
