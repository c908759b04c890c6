"""Household Budget FastAPI app."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from household_budget import __version__
from household_budget.api.routers import (
    expenses_router,
    subscriptions_router,
    system_router,
)
from household_budget.billing import UnsupportedFrequencyError
from household_budget.orchestrator import AppComponents, create_app_components
from household_budget.services.storage import NotFoundError, StorageError
from household_budget.services.subscriptions import FrequencyNotAllowedError

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = app.state.components.scheduler
    if scheduler:
        scheduler.start()

    yield

    if scheduler:
        scheduler.shutdown()


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _bad_request_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("storage_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the API.

    Args:
        components: Pre-wired components; built from settings when omitted
    """
    app = FastAPI(
        title="Household Budget",
        description="Recurring subscriptions and expense tracking",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.components = components or create_app_components()

    # Handlers are matched along the MRO, so NotFoundError wins over StorageError
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(FrequencyNotAllowedError, _bad_request_handler)
    app.add_exception_handler(UnsupportedFrequencyError, _bad_request_handler)

    app.include_router(system_router)
    app.include_router(subscriptions_router, prefix="/api")
    app.include_router(expenses_router, prefix="/api")

    return app
