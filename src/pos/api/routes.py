"""FastAPI routes for the POS domain: transactions, QRIS payments, maintenance."""

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from protean.utils.globals import current_domain

from pos.api.schemas import (
    AddItemRequest,
    ApplyDiscountRequest,
    ApplyTaxRequest,
    CancelTransactionRequest,
    ConfigureGatewayRequest,
    CreateTransactionRequest,
    ExpirePaymentsRequest,
    ExpirePaymentsResponse,
    GatewayConfigResponse,
    GeneratePaymentRequest,
    ItemIdResponse,
    NotificationResponse,
    PaymentCodeResponse,
    PaymentStatusResponse,
    RefreshPaymentRequest,
    SimulatePaymentRequest,
    SimulatePaymentResponse,
    StatusResponse,
    TransactionIdResponse,
    TransactionItemResponse,
    TransactionResponse,
    UpdateItemQuantityRequest,
)
from pos.config import Settings
from pos.exceptions import GatewayError
from pos.gateway.fake_adapter import FakeGateway
from pos.payment.expiry import ExpireStalePayments
from pos.payment.orchestrator import PaymentCode, PaymentOrchestrator, StatusReport
from pos.transaction.cancellation import CancelTransaction, DeleteTransaction
from pos.transaction.creation import CreateTransaction
from pos.transaction.items import AddTransactionItem, RemoveTransactionItem, UpdateTransactionItemQuantity
from pos.transaction.pricing import ApplyTransactionDiscount, ApplyTransactionTax
from pos.transaction.transaction import Transaction

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return request.app.state.orchestrator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=str(transaction.id),
        owner_id=str(transaction.owner_id),
        customer_name=transaction.customer_name,
        customer_email=transaction.customer_email,
        status=transaction.status,
        items=[
            TransactionItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=item.line_total,
            )
            for item in transaction.items
        ],
        subtotal=transaction.subtotal or 0,
        discount=transaction.discount or 0,
        tax_rate=transaction.tax_rate,
        tax_amount=transaction.tax_amount or 0,
        total_amount=transaction.total_amount or 0,
        notes=transaction.notes,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
    )


def _code_response(code: PaymentCode) -> PaymentCodeResponse:
    return PaymentCodeResponse(
        payment_id=str(code.payment.id),
        transaction_id=str(code.payment.transaction_id),
        amount=code.payment.amount,
        status=code.payment.status,
        order_reference=code.payment.order_reference,
        qr_code_id=str(code.qr_code.id),
        qr_code=code.qr_code.code,
        verification_url=code.qr_code.verification_url,
        expires_at=code.qr_code.expires_at,
        reused=code.reused,
    )


def _status_response(report: StatusReport) -> PaymentStatusResponse:
    payment = report.payment
    return PaymentStatusResponse(
        payment_id=str(payment.id),
        transaction_id=str(payment.transaction_id),
        amount=payment.amount,
        status=payment.status,
        transaction_status=report.transaction_status,
        order_reference=payment.order_reference,
        external_reference=payment.external_reference,
        paid_at=payment.paid_at,
        expires_at=payment.expires_at,
        gateway_checked=report.gateway_checked,
        message=report.message,
    )


# ---------------------------------------------------------------------------
# Transaction Router
# ---------------------------------------------------------------------------
transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])


@transaction_router.post("", status_code=201, response_model=TransactionIdResponse)
async def create_transaction(body: CreateTransactionRequest) -> TransactionIdResponse:
    """Open a checkout transaction, optionally with its first items."""
    command = CreateTransaction(
        owner_id=body.owner_id,
        items=json.dumps([line.model_dump() for line in body.items]),
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        notes=body.notes,
    )
    result = current_domain.process(command, asynchronous=False)
    return TransactionIdResponse(transaction_id=result)


@transaction_router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    owner_id: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[TransactionResponse]:
    repo = current_domain.repository_for(Transaction)
    transactions = repo.find_live(owner_id=owner_id, status=status, limit=limit, offset=offset)
    return [_transaction_response(t) for t in transactions]


@transaction_router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(transaction_id: str) -> TransactionResponse:
    transaction = current_domain.repository_for(Transaction).get_live(transaction_id)
    return _transaction_response(transaction)


@transaction_router.post("/{transaction_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_item(transaction_id: str, body: AddItemRequest) -> ItemIdResponse:
    command = AddTransactionItem(
        transaction_id=transaction_id,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=item_id)


@transaction_router.put("/{transaction_id}/items/{item_id}", response_model=StatusResponse)
async def update_item_quantity(transaction_id: str, item_id: str, body: UpdateItemQuantityRequest) -> StatusResponse:
    command = UpdateTransactionItemQuantity(
        transaction_id=transaction_id,
        item_id=item_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="updated")


@transaction_router.delete("/{transaction_id}/items/{item_id}", response_model=StatusResponse)
async def remove_item(transaction_id: str, item_id: str) -> StatusResponse:
    command = RemoveTransactionItem(transaction_id=transaction_id, item_id=item_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="removed")


@transaction_router.post("/{transaction_id}/discount", response_model=StatusResponse)
async def apply_discount(transaction_id: str, body: ApplyDiscountRequest) -> StatusResponse:
    command = ApplyTransactionDiscount(transaction_id=transaction_id, amount=body.amount)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="discount_applied")


@transaction_router.post("/{transaction_id}/tax", response_model=StatusResponse)
async def apply_tax(transaction_id: str, body: ApplyTaxRequest) -> StatusResponse:
    command = ApplyTransactionTax(transaction_id=transaction_id, rate=body.rate)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="tax_applied")


@transaction_router.post("/{transaction_id}/cancel", response_model=StatusResponse)
async def cancel_transaction(transaction_id: str, body: CancelTransactionRequest | None = None) -> StatusResponse:
    command = CancelTransaction(
        transaction_id=transaction_id,
        reason=body.reason if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


@transaction_router.delete("/{transaction_id}", response_model=StatusResponse)
async def delete_transaction(transaction_id: str) -> StatusResponse:
    current_domain.process(DeleteTransaction(transaction_id=transaction_id), asynchronous=False)
    return StatusResponse(status="deleted")


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
# Routes that reach the payment processor are plain `def`: FastAPI runs them
# in its threadpool so blocking HTTP calls never stall the event loop.
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/qris/generate", status_code=201, response_model=PaymentCodeResponse)
def generate_payment_code(
    body: GeneratePaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentCodeResponse:
    """Issue a QRIS code for a pending transaction (or return the live one)."""
    code = orchestrator.generate_code(
        body.transaction_id,
        amount=body.amount,
        expiry_minutes=body.expiry_minutes,
    )
    return _code_response(code)


@payment_router.post("/notifications", response_model=NotificationResponse)
async def receive_notification(
    request: Request,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> NotificationResponse:
    """Processor webhook. Answers 200 whatever the outcome once the push is authentic."""
    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Notification body is not valid JSON") from exc

    if not isinstance(payload, dict) or not payload.get("order_id") or not payload.get("transaction_status"):
        raise HTTPException(status_code=400, detail="Notification requires order_id and transaction_status")

    if not orchestrator.gateway.verify_notification(payload):
        logger.warning("notification_signature_rejected", order_reference=payload.get("order_id"))
        raise HTTPException(status_code=401, detail="Invalid notification signature")

    try:
        outcome = orchestrator.handle_notification(
            order_reference=payload["order_id"],
            external_status=payload["transaction_status"],
            external_reference=payload.get("transaction_id"),
            payload=json.dumps(payload),
        )
    except Exception:
        logger.error("notification_processing_failed", order_reference=payload["order_id"], exc_info=True)
        return NotificationResponse(status="error")
    return NotificationResponse(status=outcome.result.value)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(
    body: ConfigureGatewayRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    gateway = _fake_gateway(orchestrator, settings)
    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        status_available=body.status_available,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        status_available=gateway.status_available,
    )


@payment_router.post("/gateway/simulate", response_model=SimulatePaymentResponse)
async def simulate_payment(
    body: SimulatePaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> SimulatePaymentResponse:
    """Play the customer's side of a FakeGateway charge, optionally pushing the notification."""
    gateway = _fake_gateway(orchestrator, settings)
    try:
        notification = gateway.settle(body.order_reference, body.transaction_status)
    except GatewayError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc

    if not body.notify:
        return SimulatePaymentResponse(notification=notification, delivered=False)

    outcome = orchestrator.handle_notification(
        order_reference=notification["order_id"],
        external_status=notification["transaction_status"],
        external_reference=notification["transaction_id"],
        payload=json.dumps(notification),
    )
    return SimulatePaymentResponse(notification=notification, delivered=True, result=outcome.result.value)


def _fake_gateway(orchestrator: PaymentOrchestrator, settings: Settings) -> FakeGateway:
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Gateway controls are not available in production")
    if not isinstance(orchestrator.gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway controls are only available for FakeGateway")
    return orchestrator.gateway


@payment_router.get("/{transaction_id}/status", response_model=PaymentStatusResponse)
def get_payment_status(
    transaction_id: str,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentStatusResponse:
    return _status_response(orchestrator.get_status(transaction_id))


@payment_router.post("/{transaction_id}/refresh", response_model=PaymentCodeResponse)
def refresh_payment_code(
    transaction_id: str,
    body: RefreshPaymentRequest | None = None,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentCodeResponse:
    code = orchestrator.refresh_code(transaction_id, expiry_minutes=body.expiry_minutes if body else None)
    return _code_response(code)


@payment_router.post("/{transaction_id}/cancel", response_model=PaymentStatusResponse)
def cancel_payment(
    transaction_id: str,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentStatusResponse:
    payment = orchestrator.cancel_payment(transaction_id)
    transaction = current_domain.repository_for(Transaction).get(payment.transaction_id)
    return _status_response(StatusReport(payment=payment, transaction_status=transaction.status))


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/payments/expire", response_model=ExpirePaymentsResponse)
async def expire_stale_payments(body: ExpirePaymentsRequest | None = None) -> ExpirePaymentsResponse:
    """Expire lapsed pending payments. Meant for an external scheduler."""
    command = ExpireStalePayments(as_of=body.as_of if body else None)
    expired = current_domain.process(command, asynchronous=False)
    return ExpirePaymentsResponse(expired=expired or 0)
