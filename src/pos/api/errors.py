"""Mapping of domain errors onto HTTP responses.

Protean's handlers cover validation (400) and missing records (404); the
processor and storage failures below never originate inside the domain model.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from pos.exceptions import ConstraintViolation, GatewayError, PaymentGenerationFailed

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)

    @app.exception_handler(PaymentGenerationFailed)
    async def generation_failed(request: Request, exc: PaymentGenerationFailed):
        return JSONResponse(
            status_code=502,
            content={"error": {"payment": [exc.detail]}, "transaction_id": exc.transaction_id},
        )

    @app.exception_handler(GatewayError)
    async def gateway_failed(request: Request, exc: GatewayError):
        logger.warning("gateway_error_response", path=request.url.path, error=exc.detail)
        return JSONResponse(status_code=502, content={"error": {"gateway": [exc.detail]}})

    @app.exception_handler(ConstraintViolation)
    async def conflict(request: Request, exc: ConstraintViolation):
        logger.error("unreconciled_constraint_violation", path=request.url.path, constraint=exc.constraint)
        return JSONResponse(status_code=409, content={"error": {exc.constraint: [str(exc)]}})
