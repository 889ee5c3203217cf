"""
Pydantic schemas for API request/response validation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


# ============================================================================
# Export Schemas
# ============================================================================

class ExportRequest(BaseModel):
    """Manual export trigger. Without config_id, every enabled configuration runs."""
    config_id: Optional[str] = None


class ExportResponse(BaseModel):
    """Successful export outcome."""
    success: bool
    message: str
    recipient_count: Optional[int] = None


class RateLimitResponse(BaseModel):
    """Remaining manual exports for a course in the current window."""
    course_id: str
    allowed: bool
    remaining: int
    limit: int


# ============================================================================
# Export Log Schemas
# ============================================================================

class ExportLogResponse(BaseModel):
    """One Export Log entry."""
    id: int
    course_id: str
    label: str
    recipient_count: int
    recipients: List[str] = Field(default_factory=list)
    triggered_by: str
    user_id: Optional[str] = None
    username: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    created_at: datetime


class ExportLogListResponse(BaseModel):
    logs: List[ExportLogResponse]
    count: int
