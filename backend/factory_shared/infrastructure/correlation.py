"""
Request correlation.

Every request gets an id (taken from X-Request-ID when the client sends a
usable one) and, once the bearer token is verified, the id of the caller.
Both live in context variables so any log line written while serving the
request carries them.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

# Client-supplied ids are echoed into logs and headers
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")


def get_request_id() -> str:
    return request_id_var.get()


def bind_actor(subject_id: str) -> None:
    """Attach the authenticated caller to the current request context."""
    actor_id_var.set(subject_id)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Sets the request id for the duration of the request and returns it in
    the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if _VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())

        request_token = request_id_var.set(request_id)
        actor_token = actor_id_var.set("")
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            actor_id_var.reset(actor_token)
            request_id_var.reset(request_token)


class CorrelationIdFilter:
    """
    Logging filter copying request_id and actor_id onto log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.actor_id = actor_id_var.get() or "-"
        return True
