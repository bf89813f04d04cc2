"""FastAPI application factory for the POS service.

The domain must be initialized (`pos.init()`) before the app serves requests;
each request runs inside its own domain context.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pos.api.errors import register_error_handlers
from pos.api.routes import maintenance_router, payment_router, transaction_router
from pos.config import Settings, load_settings
from pos.domain import pos
from pos.gateway import build_gateway
from pos.payment.orchestrator import PaymentOrchestrator
from pos.utils.logging import bind_gateway


def create_app(settings: Settings | None = None, orchestrator: PaymentOrchestrator | None = None) -> FastAPI:
    settings = settings or load_settings()
    if orchestrator is None:
        orchestrator = PaymentOrchestrator(
            build_gateway(settings),
            default_expiry_minutes=settings.qr_expiry_minutes,
            gateway_timeout=settings.gateway_timeout_seconds,
        )
    bind_gateway(type(orchestrator.gateway).__name__)

    app = FastAPI(
        title="QRIS POS API",
        description="Point-of-sale checkout with QRIS payments",
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the Protean domain context for each request."""
        with pos.domain_context():
            response = await call_next(request)
        return response

    register_error_handlers(app)
    app.include_router(transaction_router)
    app.include_router(payment_router)
    app.include_router(maintenance_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domain": pos.name,
                "gateway": type(app.state.orchestrator.gateway).__name__,
                "environment": settings.environment,
            }
        )

    return app
