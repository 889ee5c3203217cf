"""
FastAPI application for the participation report service.

Provides the manual export trigger, the Export Log listing and health
checks, and hosts the export scheduler for the lifetime of the process.
"""

from fastapi import FastAPI, HTTPException, Depends, Security, Request, status
from fastapi.security import APIKeyHeader
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from typing import Optional
import time

# Rate limiting
from slowapi.errors import RateLimitExceeded

from config.settings import Settings, get_settings
from pydantic import ValidationError

# Import routers
from api.exports import router as exports_router, limiter
from api.health import router as health_router

# Import export pipeline
from services.export_service import ExportExecutor
from services.factory import create_export_executor, create_export_scheduler

# Import metrics collector
from utils.metrics import get_metrics_collector

# Import Sentry error handler
from middleware.error_handler import init_sentry, sentry_exception_handler

# Import correlation ID middleware
from asgi_correlation_id import CorrelationIdMiddleware

# Import structured logging
from loguru import logger
from config.logging_config import setup_structured_logging


# API Key authentication
API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_api_key(api_key: str = Security(api_key_header)) -> str:
    """Verify API key from header."""
    expected_key = get_settings().api_key

    # If no API key is configured, allow all requests (development mode)
    if not expected_key:
        return "dev_mode"

    if not api_key or api_key != expected_key:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key"
        )
    return api_key


# ============================================================================
# Security Headers Middleware
# ============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS only for HTTPS
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with correlation ID, method, path, status, latency."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Request-ID", "unknown")
        user_id = request.headers.get("X-User-Id")

        start_time = time.time()

        with logger.contextualize(correlation_id=correlation_id, user_id=user_id):
            logger.info(f"{request.method} {request.url.path}")

            response = await call_next(request)

            latency_ms = (time.time() - start_time) * 1000

            if hasattr(request.app.state, 'metrics_collector'):
                request.app.state.metrics_collector.record_request(
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    latency_ms=latency_ms
                )

            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "latency_ms": round(latency_ms, 2),
                    "user_id": user_id
                }
            )

            return response


# ============================================================================
# Application Factory
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    executor: Optional[ExportExecutor] = None,
    start_scheduler: Optional[bool] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings (default: environment settings)
        executor: Pre-built export executor (default: database-backed)
        start_scheduler: Run the export scheduler in this process
            (default: unless disable_export_scheduler is set)

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()
    if start_scheduler is None:
        start_scheduler = not settings.disable_export_scheduler

    app = FastAPI(
        title="Participation Reports",
        description="Scheduled and manual participation report exports",
        version="1.0.0"
    )

    app.state.limiter = limiter
    app.state.executor = executor
    app.state.scheduler = None

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests. Try again later."},
            headers={"Retry-After": str(getattr(exc, "retry_after", 60))}
        )

    # Global exception handler for Sentry
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return await sentry_exception_handler(request, exc)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-User-Id", "X-User-Name"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    # Generates/reads X-Request-ID
    app.add_middleware(CorrelationIdMiddleware, validator=lambda x: True)

    @app.on_event("startup")
    async def startup_event():
        setup_structured_logging(level=settings.log_level, log_file=settings.log_file)

        init_sentry(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment,
            sample_rate=settings.sentry_traces_sample_rate,
            debug=(settings.sentry_environment == "development")
        )

        app.state.metrics_collector = get_metrics_collector()

        if app.state.executor is None:
            from db import init_db
            init_db()
            logger.info("Database initialized")
            app.state.executor = create_export_executor(settings)

        if start_scheduler:
            app.state.scheduler = create_export_scheduler(app.state.executor, settings)
            app.state.scheduler.start()
        else:
            logger.info("Export scheduler disabled in this process")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        app.state.metrics_collector.log_metrics()

    app.include_router(health_router, tags=["health"])
    app.include_router(exports_router, prefix="/api", dependencies=[Depends(get_api_key)])

    return app


def get_app() -> FastAPI:
    """Application entry point for uvicorn (factory mode)."""
    try:
        return create_app()
    except ValidationError as e:
        logger.error(f"Configuration error: {e}")
        raise SystemExit(1)
