"""API routes: callable admin api, Stripe webhook and checkout."""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError

from jojo_orders.core.errors import GatewayError, SchemaError, SignatureInvalid
from jojo_orders.core.logger import setup_logger
from jojo_orders.handlers.webhook import handle_webhook_event
from jojo_orders.models.api import (
    OPERATOR_ENDPOINTS,
    ApiRequest,
    ApproveRefundRequest,
    ArchiveOrdersRequest,
    DenyRefundRequest,
    PaymentIntentRequest,
    ProcessRefundRequest,
    RequestRefundRequest,
    UpdateStatusRequest,
)
from jojo_orders.models.order import OrderStatus
from jojo_orders.server.auth import authorize_operator, require_operator

logger = setup_logger(__name__)
router = APIRouter()

api_request_adapter = TypeAdapter(ApiRequest)


@router.get("/")
async def root() -> dict:
    """Root endpoint with basic service info."""
    return {
        "service": "Give Back Jojo Orders",
        "version": "1.0.0",
        "endpoints": {
            "api": "POST /api",
            "webhook": "POST /webhook",
            "payment": "POST /create-payment-intent",
            "orders": "GET /orders",
            "health": "GET /health",
        },
    }


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint for monitoring."""
    state = request.app.state
    settings = state.settings

    database_ok = await state.store.health_check()
    checks = {
        "database": "ok" if database_ok else "unreachable",
        "stripe_secret_key": "ok" if settings.stripe_secret_key else "missing",
        "stripe_webhook_secret": "ok" if settings.stripe_webhook_secret else "missing",
        "admin_api_key": "ok" if settings.admin_api_key else "missing",
    }

    if not database_ok:
        status = "unhealthy"
    elif "missing" in checks.values():
        status = "degraded"
    else:
        status = "healthy"

    return {"status": status, "service": "jojo-orders", "checks": checks}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
) -> JSONResponse:
    """
    Stripe webhook endpoint.

    The signature is verified on the raw body before anything is parsed.
    Any verified event is acknowledged with 200, even if applying it failed,
    so Stripe does not keep redelivering it; signature failures get 400.
    """
    raw_body = await request.body()
    state = request.app.state

    try:
        event = state.gateway.verify_webhook_signature(raw_body, stripe_signature)
    except SignatureInvalid as e:
        logger.warning(f"Webhook signature verification failed: {e.message}")
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {e.message}"})

    await handle_webhook_event(event, state.reconciler, state.dead_letters)
    return JSONResponse(status_code=200, content={"received": True})


@router.post("/create-payment-intent")
async def create_payment_intent(request: Request, body: PaymentIntentRequest) -> JSONResponse:
    """Create a Stripe PaymentIntent for checkout; ``amount`` is in cents."""
    try:
        intent = await request.app.state.gateway.create_payment_intent(
            body.amount,
            currency=body.currency,
            metadata=body.metadata,
        )
    except GatewayError as e:
        logger.error(f"Error creating PaymentIntent: {e.message}")
        return JSONResponse(status_code=500, content={"error": e.message})

    return JSONResponse(status_code=200, content={"clientSecret": intent.client_secret})


@router.post("/api")
async def callable_api(
    request: Request,
    x_api_key: Optional[str] = Header(None),
) -> dict:
    """
    Callable endpoint for the order screens.

    The body is tagged by ``endpoint``. Operator endpoints need a valid
    X-API-Key. Returns ``{}`` on success; archiveOrders returns per-id outcomes.
    """
    try:
        data = json.loads(await request.body())
    except ValueError:
        raise SchemaError("Request body must be JSON")

    state = request.app.state
    endpoint = data.get("endpoint") if isinstance(data, dict) else None
    # Operator endpoints are authorized on the tag, before the body is validated
    if isinstance(endpoint, str) and endpoint in OPERATOR_ENDPOINTS:
        authorize_operator(x_api_key, state.settings.admin_api_key)

    try:
        payload = api_request_adapter.validate_python(data)
    except ValidationError as e:
        raise SchemaError(f"Invalid request for endpoint {endpoint!r}: {e}")

    lifecycle = state.lifecycle
    logger.info(f"api call: {payload.endpoint}", extra={"endpoint": payload.endpoint})

    if isinstance(payload, ApproveRefundRequest):
        await lifecycle.approve_refund(payload.order_id)
    elif isinstance(payload, DenyRefundRequest):
        await lifecycle.deny_refund(payload.order_id, payload.deny_reason)
    elif isinstance(payload, ProcessRefundRequest):
        await lifecycle.process_refund(payload.order_id)
    elif isinstance(payload, ArchiveOrdersRequest):
        summary = await lifecycle.archive_orders(payload.order_ids)
        return summary.model_dump(by_alias=True)
    elif isinstance(payload, UpdateStatusRequest):
        await lifecycle.change_status(payload.order_id, payload.status)
    elif isinstance(payload, RequestRefundRequest):
        await lifecycle.request_refund(payload.order_id, payload.reason, payload.return_items)

    return {}


@router.get("/orders", dependencies=[Depends(require_operator)])
async def list_orders(request: Request, status: Optional[OrderStatus] = None) -> List[dict]:
    """List active orders, newest first, optionally filtered by status."""
    orders = await request.app.state.store.query(status)
    return [order.to_document() for order in orders]
