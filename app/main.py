"""FastAPI application factory and lifecycle wiring."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api import router
from app.schemas import RequestErrorResponse
from logging_config import configure_logging
from services.eligibility import build_default_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_service()
    try:
        service.store.ping()
    except Exception:
        logger.exception("Spatial store is unreachable; refusing to start")
        service.shutdown()
        build_default_service.cache_clear()
        raise
    logger.info("Spatial store connection verified")
    try:
        yield
    finally:
        service.shutdown()
        build_default_service.cache_clear()


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "Rejected malformed request to %s: %s", request.url.path, exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=RequestErrorResponse().model_dump(),
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Ride Eligibility Service",
        description="Decides whether a rider may start a ride and lists available bikes nearby.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)
    return app

app = create_app()
