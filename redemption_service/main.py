"""
main.py — FastAPI Entry Point for the Redemption Service

This module provides the HTTP interface of the membership code service.
It receives Shopify `orders/create` webhooks and hands qualifying orders to
the order pipeline, which runs after the webhook has been acknowledged.

Responsibilities:
    • Verify the webhook HMAC on the raw request body
    • Validate the payload and reject webhooks without an order ID
    • Trigger background processing (code → store → partner → order note)
    • Build the service objects on startup and close them on shutdown
    • Provide system health information
"""

import json
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from .config import Settings, load_settings
from .logging_config import get_logger, setup_logging
from .models import OrderWebhook
from .services import Services, build_services
from .verification import HMAC_HEADER, verify_signature
from .workflow import OrderPipeline

# Initialization
setup_logging(os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FILE") or None)
log = get_logger(__name__)

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Builds the store and outbound clients on startup, unless they were injected,
    and closes them on shutdown.

    Missing settings are logged and leave the affected client uninitialized;
    the service still starts and answers health checks.
    """
    log.info("Membership code service starting...")
    owns_services = app.state.pipeline is None
    if owns_services:
        app.state.services = build_services(app.state.settings)
        app.state.pipeline = OrderPipeline.from_services(app.state.services)
    if app.state.settings.verify_webhooks and not app.state.settings.webhook_secret:
        log.error("WEBHOOK_SECRET missing: all webhooks will be rejected.")

    yield

    if owns_services:
        app.state.services.close()
    log.info("Membership code service stopped.")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None,
               pipeline: Optional[OrderPipeline] = None) -> FastAPI:
    """
    Creates the FastAPI application.

    Args:
        settings (Settings, optional): Configuration; loaded from the environment when omitted.
        services (Services, optional): Pre-built store and clients. When omitted they are
            built on startup and closed on shutdown.
        pipeline (OrderPipeline, optional): Pre-built pipeline, mainly for tests.

    Returns:
        FastAPI: The configured application.
    """
    if settings is None:
        settings = services.settings if services is not None else load_settings()

    app = FastAPI(title="Membership Code Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services
    app.state.pipeline = pipeline
    if pipeline is None and services is not None:
        app.state.pipeline = OrderPipeline.from_services(services)
    app.include_router(router)
    return app


# Webhook Endpoint: Shopify → Redemption Service
@router.post("/webhook/orders-create")
async def orders_create(request: Request, background_tasks: BackgroundTasks):
    """
    Receives an `orders/create` webhook from Shopify and schedules processing.

    The HMAC is checked against the raw body before anything is parsed. The
    webhook is acknowledged immediately; the pipeline runs as a background task
    and reports its outcome through the logs.

    Returns:
        PlainTextResponse: "OK" (200) once processing is scheduled, also for
        orders that will be skipped.
            - 400 if the body is not a JSON object or has no order ID
            - 401 if the signature does not match
            - 500 if the order could not be scheduled
    """
    settings = request.app.state.settings
    body = await request.body()

    if settings.verify_webhooks:
        if not verify_signature(settings.webhook_secret, body, request.headers.get(HMAC_HEADER)):
            log.warning("Webhook rejected: HMAC verification failed.")
            return PlainTextResponse("Unauthorized", status_code=401)

    try:
        payload = json.loads(body)
        order = OrderWebhook.model_validate(payload)
    except (ValueError, ValidationError) as e:
        log.error(f"Webhook rejected: invalid payload ({e}).")
        return PlainTextResponse("Invalid payload", status_code=400)

    if order.order_id is None:
        log.error("No order ID found in webhook data.")
        return PlainTextResponse("No order ID found", status_code=400)

    try:
        log.info(f"[Order: {order.order_id}] New webhook received.")
        background_tasks.add_task(request.app.state.pipeline.process, order)
    except Exception as e:
        log.critical(f"Critical error while accepting order {order.order_id}: {e}", exc_info=True)
        return PlainTextResponse("Internal Server Error", status_code=500)

    return PlainTextResponse("OK", status_code=200)


# Health Check Endpoint
@router.get("/health")
def health_check():
    """
    Simple liveness probe for monitoring systems and container orchestrators.

    Returns:
        dict: A basic JSON object indicating service availability.
    """
    return {"status": "ok"}


app = create_app()


def run():
    """Starts the HTTP server on the configured port."""
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)


if __name__ == "__main__":
    run()
