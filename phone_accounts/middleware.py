"""
Custom middleware for the phone account service.
"""

import time
from typing import Callable, Dict, Any, Iterable, Optional
from datetime import datetime, timezone

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from phone_accounts.observability import get_trace_context, record_http_metrics

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Request-ID"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.
    """

    def __init__(self, app, exclude_paths: Optional[set] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get(CORRELATION_HEADER, f"req_{int(time.time() * 1000)}")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id, **get_trace_context())

        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2)
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "InternalServerError",
                    "message": "An unexpected error occurred",
                    "correlation_id": correlation_id,
                    "timestamp": _utcnow_iso()
                },
                headers={CORRELATION_HEADER: correlation_id}
            )

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2)
        )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to responses.

    Account data must never be cached by intermediaries.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update({
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Referrer-Policy": "no-referrer",
            "Cache-Control": "no-store"
        })

        return response


class RequestStats:
    """In-process request counters exposed on /metrics."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0

    def record(self, status_code: int, processing_time: float) -> None:
        self.request_count += 1
        self.total_processing_time += processing_time
        if status_code >= 400:
            self.error_count += 1

    def snapshot(self) -> Dict[str, Any]:
        avg_processing_time = (
            self.total_processing_time / self.request_count
            if self.request_count > 0 else 0
        )
        return {
            "total_requests": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / self.request_count if self.request_count > 0 else 0,
            "avg_processing_time_ms": round(avg_processing_time * 1000, 2)
        }


# Global stats instance
request_stats = RequestStats()


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    return request_stats.snapshot()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    def __init__(self, app, stats: Optional[RequestStats] = None):
        super().__init__(app)
        self.stats = stats or request_stats

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            processing_time = time.time() - start_time
            self.stats.record(status_code, processing_time)
            record_http_metrics(request.method, request.url.path, status_code, processing_time)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory per-client rate limit for the endpoints that send SMS or
    accept verification codes.
    """

    def __init__(
        self,
        app,
        max_requests: int = 10,
        window_seconds: int = 60,
        paths: Iterable[str] = ("/api/v1/login", "/api/v1/login/verify")
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.paths = set(paths)
        self.requests: Dict[str, list] = {}

    def prune(self, current_time: float) -> None:
        """Forget clients with no requests left inside the window."""
        stale = [
            client_ip for client_ip, times in self.requests.items()
            if not times or current_time - times[-1] >= self.window_seconds
        ]
        for client_ip in stale:
            del self.requests[client_ip]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path not in self.paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()
        self.prune(current_time)

        recent = [
            req_time for req_time in self.requests.get(client_ip, [])
            if current_time - req_time < self.window_seconds
        ]

        if len(recent) >= self.max_requests:
            self.requests[client_ip] = recent
            logger.warning(
                "Rate limit exceeded",
                client_ip=client_ip,
                request_count=len(recent),
                max_requests=self.max_requests
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "RateLimitExceeded",
                    "message": f"Too many requests. Limit: {self.max_requests} per {self.window_seconds} seconds",
                    "correlation_id": request.headers.get(CORRELATION_HEADER, "unknown"),
                    "timestamp": _utcnow_iso()
                }
            )

        recent.append(current_time)
        self.requests[client_ip] = recent
        return await call_next(request)
