"""
Health check endpoints for the participation report service.

Provides system health status for load balancers and monitoring.
"""

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import text
from db import SessionLocal
from loguru import logger

from utils.metrics import get_metrics_collector

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint with database and scheduler status.

    Returns:
        JSON with status, version, database and scheduler state.
        HTTP 200 if healthy, 503 if database disconnected.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    health_status = {
        "status": "healthy",
        "version": "1.0.0",
        "database": "unknown",
        "scheduler": "running" if scheduler is not None and scheduler.running else "stopped"
    }

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"] = f"disconnected: {str(e)}"
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail=health_status
        )

    return health_status


@router.get("/metrics")
async def metrics():
    """Request and export counters."""
    collector = get_metrics_collector()
    return {
        "latency_percentiles": collector.get_percentiles(),
        "error_rate": collector.get_error_rate(),
        "exports": collector.get_export_metrics()
    }
