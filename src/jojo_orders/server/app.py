"""FastAPI application setup and configuration."""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jojo_orders.config.settings import Settings
from jojo_orders.core.errors import (
    GatewayError,
    InvalidTransition,
    NotFound,
    OrderServiceError,
    SchemaError,
    SignatureInvalid,
    StoreError,
)
from jojo_orders.core.event_logger import DeadLetterLog
from jojo_orders.core.logger import setup_logger
from jojo_orders.core.monitoring import init_monitoring
from jojo_orders.db import OrderStore, get_engine, get_session_factory, init_db
from jojo_orders.integrations.gateway import GatewayConfig, PaymentGateway, StripeGateway
from jojo_orders.services.lifecycle import OrderLifecycle
from jojo_orders.services.reconciler import WebhookReconciler

logger = setup_logger(__name__)

ERROR_STATUS_CODES = {
    NotFound: 404,
    InvalidTransition: 409,
    GatewayError: 502,
    StoreError: 503,
    SchemaError: 400,
    SignatureInvalid: 400,
}

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "https://bg-jojo.web.app",
    "https://bg-jojo.firebaseapp.com",
    "https://givebackjojo.org",
]


def status_code_for(error: OrderServiceError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return code
    return 500


def gateway_config_from(settings: Settings) -> GatewayConfig:
    return GatewayConfig(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_base=settings.stripe_api_base,
        currency=settings.stripe_currency,
        timeout=settings.gateway_timeout,
        webhook_tolerance=settings.webhook_tolerance_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Configuration; loaded from the environment when omitted
        gateway: Payment gateway; a StripeGateway built from settings when omitted
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Give Back Jojo Orders",
        version="1.0.0",
        description="Order lifecycle, refunds and Stripe payment reconciliation",
    )

    init_monitoring(settings.glitchtip_dsn, settings.environment)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    engine = get_engine(settings.database_url)
    store = OrderStore(get_session_factory(engine))
    gateway = gateway or StripeGateway(gateway_config_from(settings))
    lifecycle = OrderLifecycle(store, gateway)

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.gateway = gateway
    app.state.lifecycle = lifecycle
    app.state.reconciler = WebhookReconciler(lifecycle)
    app.state.dead_letters = DeadLetterLog(settings.dead_letter_dir)

    from jojo_orders.server import routes

    app.include_router(routes.router)

    @app.exception_handler(OrderServiceError)
    async def order_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"code": SchemaError.code, "message": str(exc.errors())},
        )

    @app.on_event("startup")
    async def startup_db():
        """Create tables on application startup."""
        try:
            await init_db(engine)
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    @app.on_event("shutdown")
    async def shutdown_handler():
        """Close the gateway client and database connections."""
        logger.info("Starting graceful shutdown...")

        try:
            await gateway.aclose()
        except Exception as e:
            logger.error(f"Error closing payment gateway client: {e}")

        try:
            await engine.dispose()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database connections: {e}")

        logger.info("Graceful shutdown completed")

    return app
