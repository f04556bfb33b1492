"""
Request middleware — correlation IDs and per-request log lines.

Every request gets a request_id (the caller's X-Request-ID when it is a
sane token, a fresh one otherwise) and an API area tag. Both are placed in
the logging request context, so reminder dispatch logs, including those
written from channel worker threads, carry the id of the HTTP call that
triggered them.

Response headers:
    X-Request-ID     correlation id
    X-Process-Time   wall time spent in the app
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from subcal.app.core.logging_config import reset_request_context, set_request_context

logger = logging.getLogger(__name__)

# Longest-prefix-first; anything unlisted is "other"
AREA_BY_PREFIX = (
    ("/api/v1/billing/test/", "billing-test"),
    ("/api/v1/billing/", "billing"),
    ("/health", "health"),
    ("/docs", "docs"),
    ("/redoc", "docs"),
    ("/openapi", "docs"),
)

# Areas polled too often to be worth a log line
QUIET_AREAS = frozenset({"docs"})
QUIET_PATHS = frozenset({"/health/live", "/favicon.ico"})

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._-]{1,64}")


def resolve_request_id(header_value: Optional[str]) -> str:
    """Reuse a caller-supplied id if it is a plain token; mint one otherwise."""
    if header_value and _REQUEST_ID_RE.fullmatch(header_value):
        return header_value
    return uuid.uuid4().hex[:16]


def area_for(path: str) -> str:
    for prefix, area in AREA_BY_PREFIX:
        if path.startswith(prefix):
            return area
    return "other"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag the request, time it and log one line when it completes.

    Failed reminder sends surface as 4xx/5xx responses from the billing
    area and are logged at WARNING; successful ones at INFO.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        area = area_for(path)
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        client_ip = request.client.host if request.client else "unknown"

        token = set_request_context(
            request_id=request_id,
            area=area,
            endpoint=path,
            method=request.method,
            client_ip=client_ip,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

            if area not in QUIET_AREAS and path not in QUIET_PATHS:
                level = logging.WARNING if response.status_code >= 400 else logging.INFO
                logger.log(
                    level,
                    "%s %s [%s] → %d (%.1fms)",
                    request.method, path, area, response.status_code, duration_ms,
                    extra={
                        "duration_ms": duration_ms,
                        "status_code": response.status_code,
                        "endpoint": path,
                    },
                )
            return response
        except Exception:
            logger.error(
                "%s %s [%s] → 500 (%.1fms)",
                request.method, path, area, (time.perf_counter() - start) * 1000,
                extra={"status_code": 500, "endpoint": path},
            )
            raise
        finally:
            reset_request_context(token)
