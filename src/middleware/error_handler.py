"""
Error tracking and global exception handling for the report export service.

Integrates Sentry for production error aggregation and debugging.
"""

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger


def init_sentry(
    dsn: str,
    environment: str,
    sample_rate: float = 0.1,
    debug: bool = False
) -> bool:
    """
    Initialize Sentry with FastAPI integration.

    Args:
        dsn: Sentry DSN from dashboard
        environment: 'development' or 'production'
        sample_rate: Traces sample rate (1.0 for dev, 0.1 for prod)
        debug: Enable debug mode (verbose logging)

    Returns:
        True if Sentry was initialized
    """
    if not dsn:
        logger.warning("SENTRY_DSN not configured - error tracking disabled")
        return False

    traces_sample_rate = 1.0 if environment == "development" else sample_rate

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        debug=debug,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=logging.INFO,  # Capture info and above
                event_level=logging.ERROR  # Send errors as events
            )
        ],
        # Filter out health check noise
        before_send_transaction=lambda event, hint: None if event.get("transaction", "").startswith("/health") else event,
        before_send=_filter_sensitive_data
    )

    logger.info(f"Sentry initialized: environment={environment}, traces_sample_rate={traces_sample_rate}")
    return True


def _filter_sensitive_data(event, hint):
    """
    Filter sensitive data before sending to Sentry.

    Removes API keys and recipient lists.
    """
    if "request" in event and "headers" in event["request"]:
        event["request"]["headers"] = {
            k: v for k, v in event["request"]["headers"].items()
            if k.lower() not in ["authorization", "cookie", "x-api-key"]
        }

    if "extra" in event:
        for key in ["api_key", "sendgrid_api_key", "recipients"]:
            event["extra"].pop(key, None)

    return event


async def sentry_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler that captures errors in Sentry.

    Handles all uncaught exceptions, logs them, and returns
    a generic error message.
    """
    sentry_sdk.capture_exception(exc)

    logger.opt(exception=exc).error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}"
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "An internal error occurred."}
    )


def set_user_context(user_id: Optional[str], username: Optional[str] = None) -> None:
    """
    Set user context in Sentry for error tracking.

    Args:
        user_id: Acting user ID
        username: Acting user name (optional)
    """
    if user_id:
        sentry_sdk.set_user({"id": user_id, "username": username})
