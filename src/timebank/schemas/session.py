"""Pydantic schemas for session booking endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import CloseReason, LocationType, SessionStatus


class SessionCreate(BaseModel):
    """Request body for booking a session; the learner is the caller."""

    teacher_id: UUID
    skill_id: UUID
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., gt=0, description="Session length in minutes; also the credits at stake.")
    location_type: LocationType
    location_details: Optional[str] = Field(None, max_length=500)


class SessionRead(BaseModel):
    """Session response payload."""

    model_config = ConfigDict(from_attributes=True)

    session_id: UUID
    teacher_id: UUID
    learner_id: UUID
    skill_id: UUID
    start_time: datetime
    end_time: datetime
    duration: int
    location_type: LocationType
    location_details: Optional[str]
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    closed_by: Optional[UUID] = None
    close_reason: Optional[CloseReason] = None
