import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse

from room_inventory.bookings.router import router as booking_router
from room_inventory.config import Settings
from room_inventory.container import build_services
from room_inventory.database.engine import create_tables
from room_inventory.exceptions import BookingError
from room_inventory.inventory.router import router as rooms_router
from room_inventory.logging_config import configure_logging
from room_inventory.notifications.rabbitmq import RabbitMQPublisher
from room_inventory.notifications.websocket import WebSocketBroadcaster
from room_inventory.workers import reconcile_inventory_worker

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    services = build_services(settings)
    # A stuck socket is dropped before the notifier gives up on the whole broadcast
    broadcaster = WebSocketBroadcaster(send_timeout=settings.notify_timeout / 2)
    services.notifier.subscribe(broadcaster)

    publisher = None
    if settings.rabbitmq_url:
        publisher = RabbitMQPublisher(settings.rabbitmq_url, settings.rabbitmq_queue)
        services.notifier.subscribe(publisher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_tables_on_startup:
            await create_tables(services.engine)

        worker = None
        if settings.reconcile_interval > 0:
            # Background drift check of ledger counters against bookings
            worker = asyncio.create_task(
                reconcile_inventory_worker(services.inventory, settings.reconcile_interval)
            )
        try:
            yield
        finally:
            if worker is not None:
                worker.cancel()
                try:
                    await worker
                except asyncio.CancelledError:
                    pass
            await services.dispose()
            if publisher is not None:
                await publisher.close()

    app = FastAPI(
        title="Room Inventory Service",
        description="Room inventory admission and booking lifecycle.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.admission = services.admission
    app.state.lifecycle = services.lifecycle
    app.state.inventory = services.inventory
    app.state.broadcaster = broadcaster

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": "room-inventory"}

    @app.websocket("/ws")
    async def events_socket(websocket: WebSocket):
        await broadcaster.serve(websocket)

    app.include_router(rooms_router, prefix="/api/v1")
    app.include_router(booking_router, prefix="/api/v1")
    return app


if __name__ == "__main__":
    uvicorn.run("room_inventory.main:create_app", factory=True, reload=True)
