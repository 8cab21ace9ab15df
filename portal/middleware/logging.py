### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Request Logging Middleware -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Request Logging Middleware

Logs every API request with a short request id, the (masked) API key, the
acting user, status and response time. The request id is also returned in
the X-Request-ID header and is available to handlers as
request.state.request_id.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from portal.utils import setup_logger

# Set up API logger
api_logger = setup_logger("alcada_portal", log_to_file=True, log_to_console=False)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging all API requests

    Captures:
    - Request ID (incoming X-Request-ID or a new short UUID)
    - Method, path and query
    - API key (masked) and acting user
    - Client IP
    - Response status and time
    """

    # Paths not worth an INFO line (probes poll constantly)
    QUIET_PATHS = ("/health/live", "/health/ready")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.time()

        method = request.method
        path = request.url.path
        query = str(request.url.query) if request.url.query else ""
        client_ip = request.client.host if request.client else "unknown"

        api_key = request.headers.get("X-API-Key", "none")
        masked_key = api_key[:8] + "..." if len(api_key) > 8 else api_key
        user = request.headers.get("X-User-Id") or request.headers.get("X-User-Email") or "-"

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            api_logger.error(f"[{request_id}] ERROR {method} {path} - {e!s}")
            raise

        response_time = (time.time() - start_time) * 1000  # ms

        log_entry = (
            f"[{request_id}] "
            f"{method} {path}"
            f"{f'?{query}' if query else ''} "
            f"| key={masked_key} "
            f"| user={user} "
            f"| ip={client_ip} "
            f"| status={status_code} "
            f"| time={response_time:.2f}ms"
        )

        if status_code >= 500:
            api_logger.error(log_entry)
        elif status_code >= 400:
            api_logger.warning(log_entry)
        elif path in self.QUIET_PATHS:
            api_logger.debug(log_entry)
        else:
            api_logger.info(log_entry)

        response.headers["X-Request-ID"] = request_id
        return response
