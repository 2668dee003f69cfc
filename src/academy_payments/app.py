"""Academy Payments FastAPI application.

Usage:
    uvicorn academy_payments.app:create_app --factory --host 0.0.0.0 --port 8000
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from academy_payments.actors import ActorDirectory
from academy_payments.api import payment_router
from academy_payments.config import Settings
from academy_payments.enrollment import EnrollmentLinkage
from academy_payments.errors import (
    ConcurrentUpdate,
    Forbidden,
    GatewayTimeout,
    GatewayUnavailable,
    InvalidSignature,
    NotFound,
    PaymentError,
    ValidationError,
)
from academy_payments.gateway.port import PaymentGateway
from academy_payments.services import build_services
from academy_payments.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

# Most specific first: GatewayTimeout is a GatewayUnavailable
_STATUS_CODES: list[tuple[type[PaymentError], int]] = [
    (ValidationError, 400),
    (InvalidSignature, 400),
    (Forbidden, 403),
    (NotFound, 404),
    (GatewayTimeout, 504),
    (GatewayUnavailable, 503),
    (ConcurrentUpdate, 503),
]


def _status_code_for(exc: PaymentError) -> int:
    return next((code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 500)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaymentError)
    async def handle_payment_error(request: Request, exc: PaymentError) -> JSONResponse:
        status_code = _status_code_for(exc)
        if status_code >= 500:
            logger.warning("Transient payment failure", path=request.url.path, error=str(exc))

        content: dict = {"error": str(exc)}
        if isinstance(exc, ValidationError):
            content = {"error": "Validation failed", "errors": exc.messages}
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(OperationalError)
    async def handle_database_unavailable(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error("Database unavailable", path=request.url.path, error=str(exc.orig))
        return JSONResponse(status_code=503, content={"error": "Database unavailable"})


def create_app(
    settings: Settings | None = None,
    gateway: PaymentGateway | None = None,
    linkage: EnrollmentLinkage | None = None,
    directory: ActorDirectory | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging()

    services = build_services(settings, gateway=gateway, linkage=linkage, directory=directory)
    services.database.setup()

    app = FastAPI(
        title="Academy Payments API",
        description="Payment creation and gateway webhook reconciliation",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(payment_router)

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse(
            content={
                "status": "ok",
                "environment": settings.environment,
                "gateway": type(services.gateway).__name__,
            }
        )

    return app
