"""
Correlation ID management for request tracing.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied IDs end up in every log line for the request.
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id_var.get()


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def is_valid_correlation_id(value: Optional[str]) -> bool:
    return bool(value) and _VALID_ID.match(value) is not None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Extract or generate a correlation ID for each request.

    The ID is taken from ``X-Correlation-ID`` (or ``X-Request-ID``) when the
    caller sends a well-formed one (otherwise generated) and is echoed back on
    the response.
    """

    def __init__(
        self,
        app: Any,
        header_name: str = CORRELATION_ID_HEADER,
        generator: Callable[[], str] = generate_correlation_id,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get(self.header_name) or request.headers.get(
            REQUEST_ID_HEADER
        )
        if not is_valid_correlation_id(correlation_id):
            correlation_id = self.generator()
        token = _correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            _correlation_id_var.reset(token)
        response.headers[self.header_name] = correlation_id
        return response
