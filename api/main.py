"""
FastAPI application for the order pipeline.

This application provides:
1. The order intake endpoint (POST /orders)
2. Read-only views of orders and the outbox
3. A replay endpoint that re-drives the notification consumer from the outbox

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from order_pipeline.event_bus import EventBus
from order_pipeline.notification_service import NotificationService, create_processed_store
from order_pipeline.replay import replay_outbox
from order_pipeline.services.ordering import OrderingService, create_order_store
from shared.channels import LogNotificationChannel
from shared.config import Settings, configure_logging, get_settings
from shared.errors import ConflictError, StorageError, ValidationError

logger = logging.getLogger("api")


# Request/response models
class CreateOrderRequest(BaseModel):
    """Body of POST /orders. Field contents are validated by the ordering service."""
    item_ids: Any = Field(default=None, alias="itemId")
    order_id: Any = Field(default=None, alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class OrderAcceptedResponse(BaseModel):
    """Request accepted, will be processed."""
    orderId: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    settings: Optional[Settings] = None,
    channel: Optional[LogNotificationChannel] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Runtime settings (defaults to the environment)
        channel: Notification channel (defaults to a new log channel)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire the pipeline on startup, drain the bus on shutdown."""
        event_bus = EventBus()
        order_store = create_order_store(settings.orders_path)
        processed_store = create_processed_store(settings.processed_path)
        await order_store.initialize()
        await processed_store.initialize()

        ordering_service = OrderingService(store=order_store, event_bus=event_bus)
        notification_service = NotificationService(
            marks=processed_store,
            channel=channel or LogNotificationChannel(fail_rate=settings.notification_fail_rate),
            event_bus=event_bus,
        )

        if settings.replay_on_startup:
            await replay_outbox(order_store, notification_service)
        notification_service.start()

        app.state.event_bus = event_bus
        app.state.ordering_service = ordering_service
        app.state.notification_service = notification_service
        app.state.channel = notification_service.channel

        logger.info(f"Order pipeline started (data dir: {settings.data_dir})")
        yield

        await event_bus.close()
        notification_service.stop()
        logger.info("Order pipeline stopped")

    app = FastAPI(
        title="Order Outbox Pipeline",
        description="""
        Accepts orders, records each with an `order.created` outbox event and
        delivers the event to an idempotent notification consumer.

        - `POST /orders` - submit an order
        - `GET /orders`, `GET /outbox` - inspect stored records
        - `POST /outbox/replay` - re-drive the consumer from the outbox
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    # =========================================================================
    # Error mapping
    # =========================================================================

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        return _error(400, exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict_error(request: Request, exc: ConflictError):
        return _error(409, exc.message)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return _error(500, "storage failure")

    @app.exception_handler(RequestValidationError)
    async def handle_malformed_body(request: Request, exc: RequestValidationError):
        return _error(400, "request body must be a JSON object")

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "order-outbox-pipeline"}

    # =========================================================================
    # Orders
    # =========================================================================

    @app.post("/orders", status_code=202, response_model=OrderAcceptedResponse, tags=["Orders"])
    async def create_order(body: CreateOrderRequest, request: Request):
        """
        Submit an order.

        Returns 202 once the order and its outbox event are recorded;
        notifications happen afterwards.
        """
        ordering_service: OrderingService = request.app.state.ordering_service
        accepted = await ordering_service.submit(body.item_ids, order_id=body.order_id)
        return {"orderId": accepted.order_id}

    @app.get("/orders", tags=["Orders"])
    async def list_orders(request: Request):
        """Get all admitted orders."""
        orders = await request.app.state.ordering_service.list_orders()
        return [o.to_record() for o in orders]

    @app.get("/orders/{order_id}", tags=["Orders"])
    async def get_order(order_id: str, request: Request):
        """Get one admitted order."""
        order = await request.app.state.ordering_service.get_order(order_id)
        if order is None:
            return _error(404, "order not found")
        return order.to_record()

    # =========================================================================
    # Outbox
    # =========================================================================

    @app.get("/outbox", tags=["Outbox"])
    async def list_outbox(request: Request):
        """Get every outbox event in append order."""
        return await request.app.state.ordering_service.list_outbox()

    @app.post("/outbox/replay", tags=["Outbox"])
    async def replay(request: Request):
        """Re-drive the notification consumer from the outbox."""
        report = await replay_outbox(
            request.app.state.ordering_service.store,
            request.app.state.notification_service,
        )
        return report.to_dict()

    return app


configure_logging(get_settings().log_level)

app = create_app()
