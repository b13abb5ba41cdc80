"""Production hardening middleware for FastAPI.

Includes:
- Error handling with structured error responses
- Security headers
- Request logging
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import time
import logging
from typing import Callable, Dict, Any

from supplychain_api.errors import SupplyChainError

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling with structured error responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(f"Unhandled exception for {request.url.path}")

            status_code = exc.status_code if isinstance(exc, SupplyChainError) else 500
            return JSONResponse(
                status_code=status_code,
                content={
                    "error": {
                        "type": type(exc).__name__,
                        "message": str(exc),
                        "path": str(request.url.path),
                        "method": request.method,
                    },
                    "status": "error",
                },
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        if request.url.path != "/health":
            logger.info(
                f"{request.method} {request.url.path} "
                f"- Status: {response.status_code} "
                f"- Duration: {duration:.3f}s "
                f"- Client: {request.client.host if request.client else 'unknown'}"
            )

        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


def setup_production_middleware(app: FastAPI, config: Dict[str, Any] = None):
    """Setup all production middleware on the FastAPI app.

    Args:
        app: FastAPI application instance
        config: Optional configuration dict with:
            - enable_logging: whether to enable request logging (default: True)
    """
    config = config or {}

    # Last added = first executed
    if config.get("enable_logging", True):
        app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(SecurityHeadersMiddleware)

    # Innermost - catches errors from route handlers
    app.add_middleware(ErrorHandlingMiddleware)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "service": "supplychain-contract-service",
            "version": "1.0.0",
        }

    logger.info("Production middleware configured")
