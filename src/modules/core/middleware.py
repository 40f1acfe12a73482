"""Request correlation for structured logs."""

import time
import uuid
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware:
    """Bind an ``X-Request-ID`` correlation id into structlog contextvars.

    The incoming header is reused when present so ids propagate across
    services; otherwise a UUID4 is generated.  The id is echoed back on
    the response.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=cid,
            method=request.method,
            path=request.path,
        )

        start = time.monotonic()
        response = self.get_response(request)
        logger.info(
            "request.finished",
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )

        response[REQUEST_ID_HEADER] = cid
        return response
