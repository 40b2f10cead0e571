"""
FastAPI Application Entry Point.

This is the main application file for the Car Marketplace Backend.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, get_session_factory
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.services.notification_service import get_notification_dispatcher
from backend.app.services.maintenance import maintenance_loop

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.car import Car
from backend.app.models.booking_request import BookingRequest
from backend.app.models.notification import Notification

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the maintenance loop (expiry sweep, stale cars, retention).
    3. On shutdown, stops the loop and flushes pending notification deliveries.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    dispatcher = get_notification_dispatcher()
    maintenance_task = None
    if settings.expiry_sweep_interval_seconds > 0:
        maintenance_task = asyncio.create_task(
            maintenance_loop(get_session_factory(), dispatcher, settings.expiry_sweep_interval_seconds)
        )

    yield

    if maintenance_task is not None:
        maintenance_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await maintenance_task
    await dispatcher.drain()
    await engine.dispose()
    logger.info("Shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Car rental marketplace: operators list cars, drivers request them",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Car Marketplace Backend API",
        "docs": "/docs",
        "health": "/health",
    }
