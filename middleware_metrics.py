"""Middleware for tracking Prometheus metrics."""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import time
from monitoring import (
    http_requests_total,
    http_request_duration_seconds,
    http_request_errors_total
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        method = request.method
        # Use the route template so /tickets/7 and /tickets/8 share one series
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            http_request_errors_total.labels(
                method=method,
                endpoint=endpoint,
                error_type=type(e).__name__
            ).inc()
            raise

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or endpoint
        status_code = response.status_code

        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint
        ).observe(time.time() - start_time)

        # 207 marks a reconciliation gap, which is a failure worth counting
        if status_code >= 400 or status_code == 207:
            http_request_errors_total.labels(
                method=method,
                endpoint=endpoint,
                error_type=f"status_{status_code}"
            ).inc()

        return response
