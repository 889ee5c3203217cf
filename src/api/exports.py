"""
Export API routes.

Manual report export trigger and Export Log listing. Authentication is
handled upstream: the acting user arrives in the X-User-Id / X-User-Name
headers.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.schemas import (
    ExportRequest, ExportResponse, ExportLogResponse, ExportLogListResponse, RateLimitResponse
)
from config.constants import DEFAULT_LOG_LIMIT
from core.exceptions import NotFoundError, RateLimitedError, PersistenceError
from core.models import ExportContext
from middleware.error_handler import set_user_context
from services.export_service import ExportExecutor

router = APIRouter(tags=["exports"])

# Request burst guard; the per-course export quota is enforced by the executor
REQUEST_RATE_LIMIT = "30/minute"


def get_user_key(request: Request) -> str:
    """Rate limit per acting user, fallback to IP."""
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_user_key)

# error_type -> HTTP status for failed exports
ERROR_STATUS = {
    NotFoundError.error_type: status.HTTP_404_NOT_FOUND,
    RateLimitedError.error_type: status.HTTP_429_TOO_MANY_REQUESTS,
    PersistenceError.error_type: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass
class ActingUser:
    id: str
    name: Optional[str] = None


def get_acting_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None)
) -> ActingUser:
    """Acting user as forwarded by the authentication layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return ActingUser(id=x_user_id, name=x_user_name)


def get_executor(request: Request) -> ExportExecutor:
    return request.app.state.executor


@router.post("/courses/{course_id}/export", response_model=ExportResponse)
@limiter.limit(REQUEST_RATE_LIMIT)
async def trigger_export(
    request: Request,
    course_id: str,
    body: Optional[ExportRequest] = None,
    user: ActingUser = Depends(get_acting_user),
    executor: ExportExecutor = Depends(get_executor)
):
    """
    Send the participation report(s) of a course now.

    Manual exports are rate limited per course.
    """
    set_user_context(user.id, user.name)
    config_id = body.config_id if body else None

    result = await executor.run_export(
        course_id,
        ExportContext.manual(user_id=user.id, username=user.name),
        config_id
    )

    if not result.success:
        logger.info(f"Manual export of {course_id} by {user.id} failed: {result.message}")
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error_type, status.HTTP_400_BAD_REQUEST),
            detail=result.message
        )

    return ExportResponse(
        success=True,
        message=result.message,
        recipient_count=result.recipient_count
    )


@router.get("/courses/{course_id}/export/rate-limit", response_model=RateLimitResponse)
async def get_rate_limit(
    course_id: str,
    user: ActingUser = Depends(get_acting_user),
    executor: ExportExecutor = Depends(get_executor)
):
    """Remaining manual exports for a course."""
    limiter = executor.rate_limiter
    rate_status = await asyncio.to_thread(limiter.check, course_id)
    return RateLimitResponse(
        course_id=course_id,
        allowed=rate_status.allowed,
        remaining=rate_status.remaining,
        limit=limiter.max_exports
    )


@router.get("/export-logs", response_model=ExportLogListResponse)
async def list_export_logs(
    course_id: Optional[str] = None,
    limit: int = Query(default=DEFAULT_LOG_LIMIT, ge=1, le=500),
    user: ActingUser = Depends(get_acting_user),
    executor: ExportExecutor = Depends(get_executor)
):
    """Most recent Export Log entries, optionally for one course."""
    entries = await asyncio.to_thread(executor.log_store.list_recent, course_id, limit)
    logs = [
        ExportLogResponse(**entry.model_dump(mode="json"))
        for entry in entries
    ]
    return ExportLogListResponse(logs=logs, count=len(logs))
