"""
Base schemas used across the application.
"""
from datetime import datetime
from typing import Optional, Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from mailslot.utils.time import utc_now

class ResponseBase(BaseModel):
    """Base response format for API endpoints with an optional arbitrary data payload."""
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

class ErrorResponse(BaseModel):
    """Shape of every error body produced by the exception handlers in ``mailslot.main``."""
    success: bool = False
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None
    request_id: Optional[str] = None
