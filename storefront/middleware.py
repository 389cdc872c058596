"""
Middleware for FastAPI: request logging and latency.
"""
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.logging_config import hash_identifier

logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Logs every request and response with hashed caller identifiers"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        hashed_session_id = hash_identifier(request.headers.get("X-Session-Cart-ID"))
        hashed_user_id = hash_identifier(request.headers.get("X-User-ID"))

        logger.info(
            f"Request: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "hashed_session_id": hashed_session_id,
                "hashed_user_id": hashed_user_id,
                "remote_addr": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Error: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "hashed_session_id": hashed_session_id
                },
                exc_info=True
            )
            raise

        latency_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Response: {request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
                "hashed_session_id": hashed_session_id
            }
        )
        response.headers["X-Response-Time-Ms"] = f"{latency_ms:.2f}"
        return response
