"""Notifications FastAPI application.

Serves the preference, inbox, admin and maintenance routes. Each request is
wrapped in the notifications domain context.

When no queue URL is configured the delivery workers and the scheduler loop
run inside this process on in-process queues. With Redis queues they run in
``server.py`` instead and this process only enqueues.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from notifications.api.routes import router as notifications_router
from notifications.config import DeliverySettings
from notifications.delivery.runtime import DeliveryRuntime
from notifications.domain import notifications
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.scheduler import NotificationScheduler, run_scheduler
from notifications.recipient.directory import InMemoryUserDirectory

# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → in-memory database
#   - "production" → PostgreSQL via DATABASE_URL
notifications.init()

logger = structlog.get_logger(__name__)


def create_app(directory=None, settings=None, runtime=None, start_workers=None) -> FastAPI:
    """Build the API.

    ``directory`` is the POS user directory used to resolve recipients.
    ``runtime`` overrides the delivery runtime built from ``settings``;
    ``start_workers`` overrides whether workers and the scheduler loop run
    in-process (default: only when every queue is in-process).
    """
    settings = settings or DeliverySettings.from_env()
    directory = directory if directory is not None else InMemoryUserDirectory()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        delivery = runtime or DeliveryRuntime.from_settings(notifications, settings)
        app.state.runtime = delivery
        app.state.dispatcher = NotificationDispatcher(
            delivery.publisher, directory, chunk_size=settings.batch_chunk_size
        )
        app.state.scheduler = NotificationScheduler(delivery.publisher, batch_size=settings.scheduler_batch_size)

        embedded = settings.embedded_workers if start_workers is None else start_workers
        stop_scheduler = asyncio.Event()
        scheduler_task = None
        if embedded:
            await delivery.start()
            scheduler_task = asyncio.create_task(
                run_scheduler(app.state.scheduler, notifications, settings.scheduler_interval, stop_scheduler)
            )
        logger.info("Notifications API started", embedded_workers=embedded)

        yield

        if scheduler_task is not None:
            stop_scheduler.set()
            await scheduler_task
        await delivery.stop()

    app = FastAPI(
        title="POS Notifications API",
        description="Multi-channel notification dispatch: preferences, inbox and delivery analytics",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the notifications domain context for each request."""
        with notifications.domain_context():
            response = await call_next(request)
        return response

    register_exception_handlers(app)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health(request: Request):
        delivery = getattr(request.app.state, "runtime", None)
        return JSONResponse(
            content={
                "status": "ok",
                "domain": notifications.name,
                "queues": await delivery.pending() if delivery else {},
            }
        )

    return app


app = create_app()
