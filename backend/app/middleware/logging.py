import time

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        # Query values can carry owner ids; log only which params were sent.
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            params=sorted(request.query_params.keys()),
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response
