"""Correlation ID middleware and per-request audit context."""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from civic_api.audit.recorder import RequestContext

CORRELATION_HEADER = "x-correlation-id"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Add correlation ID to requests and responses."""

    async def dispatch(self, request: Request, call_next):
        """Process request with correlation ID."""
        # Get correlation ID from header or generate new one
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        request.state.correlation_id = correlation_id

        response: Response = await call_next(request)

        response.headers[CORRELATION_HEADER] = correlation_id

        return response


def client_ip(request: Request):
    """First hop of x-forwarded-for, falling back to the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45] or None
    if request.client:
        return request.client.host
    return None


async def get_request_context(request: Request) -> RequestContext:
    """Dependency capturing client provenance for audit entries."""
    return RequestContext(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        correlation_id=getattr(request.state, "correlation_id", None) or request.headers.get(CORRELATION_HEADER),
    )
