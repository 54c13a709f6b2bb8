# backend/hunt_engine/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# ids are copied into log lines and error bodies
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def get_request_id() -> str | None:
    return request_id_ctx.get()


def accept_request_id(raw: str | None) -> str:
    """The caller's id when it is short and plain, otherwise a fresh one."""
    rid = (raw or "").strip()
    if rid and _SAFE_ID.match(rid):
        return rid
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Per-request id, echoed back in the configured header.

    A well-formed incoming id is reused so a booking can be traced from the
    front end through to the signature webhook. Anything else is replaced.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        header = settings.request_id_header
        rid = accept_request_id(request.headers.get(header))

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
            resp.headers[header] = rid
            return resp
        finally:
            request_id_ctx.reset(token)
