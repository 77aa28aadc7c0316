"""Pydantic schemas for rating endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RatingCreate(BaseModel):
    """Request body for rating the other participant; the rater is the caller."""

    session_id: UUID
    rated_id: UUID
    score: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)


class RatingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rating_id: UUID
    session_id: UUID
    rater_id: UUID
    rated_id: UUID
    score: int
    feedback: Optional[str]
    created_at: datetime


class RatingSummary(BaseModel):
    """Average score a user has received."""

    user_id: UUID
    average_score: float = Field(..., ge=0)
    rating_count: int = Field(..., ge=0)
