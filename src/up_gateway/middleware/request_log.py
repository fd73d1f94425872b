"""Access log plus request correlation.

Every request gets a request_id on request.state (reused from an inbound
X-Request-ID when the storefront proxy already assigned one) which the
envelope and the response header both carry. Health checks are logged at
DEBUG so the scheduler's polling does not drown the bid traffic; anything
slower than SLOW_REQUEST_MS is logged as a warning.

    INFO [POST] /api/v1/bids -> 201 (41ms) req_a1b2c3d4e5f6
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.up_common.response import new_request_id

logger = logging.getLogger("up.request")

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 2000
_QUIET_PATHS = frozenset({"/health"})
_VALID_INBOUND_ID = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def _resolve_request_id(request: Request) -> str:
    inbound = request.headers.get(REQUEST_ID_HEADER)
    if inbound and _VALID_INBOUND_ID.match(inbound):
        return inbound
    return new_request_id()


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _resolve_request_id(request)
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        path = request.url.path
        if elapsed_ms >= SLOW_REQUEST_MS:
            level = logging.WARNING
        elif path in _QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            "[%s] %s -> %d (%.0fms) %s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
