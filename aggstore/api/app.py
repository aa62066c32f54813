"""
FastAPI application factory for aggstore.

This module creates a FastAPI app with:
- Event store lifecycle management
- Default error handlers mapping aggregate errors to status codes
- CORS configuration
- A health endpoint

Routers for concrete aggregates are passed in by the caller, together with
one event store per aggregate kind. Routers reach their store through
store_dependency(name); aggregates of different kinds never share a log.

Error mapping:
    - request validation failure        -> 400 {"message": "Invalid request"}
    - IllegalEventNumberArgument         -> 409
    - ConcurrencyConflict                -> 409
    - InvalidTransition                  -> 409
    - anything else (IllegalEventArgument, store errors) -> 500
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Mapping, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import (
    AggregateError,
    ConcurrencyConflict,
    IllegalEventNumberArgument,
    InvalidTransition,
)
from ..store.base import EventStore
from .config import Settings

logger = logging.getLogger(__name__)

CONFLICT_ERRORS = (IllegalEventNumberArgument, ConcurrencyConflict, InvalidTransition)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect the event stores for the app's lifetime."""
    stores: Mapping[str, EventStore] = app.state.stores
    owned = [store for store in stores.values() if not store.is_connected]
    for store in owned:
        await store.connect()

    yield

    for store in owned:
        await store.close()


async def invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("CLIENT | Invalid request", extra={"path": request.url.path})
    return JSONResponse(status_code=400, content={"message": "Invalid request"})


async def aggregate_error_handler(request: Request, exc: AggregateError) -> JSONResponse:
    if isinstance(exc, CONFLICT_ERRORS):
        logger.info(
            f"CLIENT | {exc.message}",
            extra={"path": request.url.path, "code": exc.code},
        )
        return JSONResponse(
            status_code=409,
            content={"message": exc.message, "code": exc.code},
        )
    logger.error(f"SERVER | {exc.message}", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"SERVER | {exc}", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(
    stores: Mapping[str, EventStore],
    routers: Iterable[APIRouter] = (),
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        stores: Event store per aggregate kind, looked up by name through
            store_dependency()
        routers: Routers for the concrete aggregates to expose
        settings: HTTP settings (loaded from env if not provided)
    """
    settings = settings or Settings()

    app = FastAPI(
        title=settings.title,
        description="Event-sourced resources backed by an append-only event log.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.stores = dict(stores)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, invalid_request_handler)
    app.add_exception_handler(AggregateError, aggregate_error_handler)
    app.add_exception_handler(Exception, server_error_handler)

    for router in routers:
        app.include_router(router)

    @app.get("/health")
    async def health():
        connected = {name: store.is_connected for name, store in app.state.stores.items()}
        return {
            "status": "healthy",
            "store_connected": all(connected.values()),
            "stores": connected,
        }

    return app
