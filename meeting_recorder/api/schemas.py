"""
API request/response schemas for the control API.
"""

from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: datetime
    version: str


class RunStatusResponse(BaseModel):
    """Current state of the recording run."""
    session_id: str
    state: str
    abort_requested: bool
    abort_reason: Optional[str] = None
    output_path: Optional[str] = None
    recording_elapsed_seconds: Optional[float] = None
    recording_remaining_seconds: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class AbortRequest(BaseModel):
    """Request to end the run early."""
    reason: str = Field(default="operator request", min_length=1, max_length=200)


class AbortResponse(BaseModel):
    """Response for an abort request."""
    accepted: bool
    state: str
