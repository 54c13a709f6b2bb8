# backend/hunt_engine/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import CollaboratorError, EngineError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware, get_request_id
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.pricing import router as pricing_router
from .routers.bookings import router as bookings_router
from .routers.contracts import router as contracts_router
from .routers.bills import router as bills_router
from .routers.signature import router as signature_router

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    if isinstance(exc, CollaboratorError):
        log.warning("collaborator_error", extra={"error": exc.code, "collaborator": exc.collaborator})
    body = exc.as_dict()
    rid = get_request_id()
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=exc.http_status, content=body)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Hunt Contract Engine", version=settings.engine_version)

    # outermost last: request id must be set before the request line is logged
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EngineError, _engine_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(pricing_router, prefix=API_PREFIX)
    app.include_router(bookings_router, prefix=API_PREFIX)
    app.include_router(contracts_router, prefix=API_PREFIX)
    app.include_router(bills_router, prefix=API_PREFIX)
    app.include_router(signature_router, prefix=API_PREFIX)

    return app


app = create_app()
