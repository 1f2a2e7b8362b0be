# WORKFLOW: Structured logging middleware for request/response monitoring.
# Used by: All API endpoints, operational monitoring, debugging
# Functions:
# 1. _log_request() - Log incoming request details (method, path, payload table count)
# 2. _log_response() - Log response details (status, timing, content type)
# 3. _log_error() - Log error details with context
#
# Logging flow: Request -> Log request -> Process -> Log response/error
# Report payloads can be large; only their table count is logged, never the body.

import json
import time
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = structlog.get_logger()


def payload_table_count(body: bytes) -> Optional[int]:
    """Number of tables in a JSON request body, or None when it has no payload tables."""
    if not body:
        return None
    try:
        data = json.loads(body.decode())
    except (UnicodeDecodeError, ValueError):
        return None
    payload = data.get("payload") if isinstance(data, dict) else None
    if not isinstance(payload, dict):
        return None
    tables = payload.get("tables")
    if not isinstance(tables, list) and isinstance(payload.get("dto"), dict):
        tables = payload["dto"].get("tables")
    return len(tables) if isinstance(tables, list) else None


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        start_time = time.time()

        await self._log_request(request)

        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            await self._log_response(request, response, process_time)
            return response

        except Exception as e:
            process_time = time.time() - start_time
            await self._log_error(request, e, process_time)
            raise

    async def _log_request(self, request: Request):
        """Log incoming request details."""
        try:
            table_count = None
            if request.method in ["POST", "PUT", "PATCH"]:
                table_count = payload_table_count(await request.body())

            logger.info(
                "Incoming request",
                method=request.method,
                path=request.url.path,
                query_params=dict(request.query_params),
                table_count=table_count,
                client_ip=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent")
            )

        except Exception as e:
            logger.error(f"Failed to log request: {e}")

    async def _log_response(self, request: Request, response: Response, process_time: float):
        """Log response details."""
        try:
            logger.info(
                "Response sent",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                process_time_ms=round(process_time * 1000, 2),
                content_length=response.headers.get("content-length"),
                content_type=response.headers.get("content-type")
            )

        except Exception as e:
            logger.error(f"Failed to log response: {e}")

    async def _log_error(self, request: Request, error: Exception, process_time: float):
        """Log error details."""
        try:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error_type=type(error).__name__,
                error_message=str(error),
                process_time_ms=round(process_time * 1000, 2)
            )

        except Exception as e:
            logger.error(f"Failed to log error: {e}")
