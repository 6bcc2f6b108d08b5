"""
Request logging middleware for the Rewards API.

One log line per request: request ID, method, path, status and latency.
The ID comes from the caller's X-Request-ID header when it sends a sane
one (a frontend can then tie its own error report to our log), otherwise
a fresh `req_<12 hex>` is minted. Either way it is echoed back in the
X-Request-ID response header and kept on request.state.request_id.

Server errors are logged at WARNING so they stand out from normal traffic.
Bodies are never logged: registration and login bodies carry passwords.

Log format:
    INFO req_a1b2c3d4e5f6 POST /payments 201 23ms
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("rewards.request")

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def resolve_request_id(request: Request) -> str:
    """Reuse the caller's request ID if it is safe to log, else mint one."""
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _VALID_REQUEST_ID.match(supplied):
        return supplied
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s %s %d %.0fms",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
