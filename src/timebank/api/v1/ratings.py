"""Endpoints for post-session ratings."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import LedgerRuleViolation
from ...schemas import RatingCreate, RatingRead, RatingSummary
from ...services import rating_service
from ..deps import get_actor_id, http_error

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post(
    "",
    response_model=RatingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Rate the other participant of a completed session",
    responses={
        201: {
            "description": "Rating recorded",
            "content": {
                "application/json": {
                    "example": {
                        "rating_id": "66666666-6666-6666-6666-666666666666",
                        "session_id": "44444444-4444-4444-4444-444444444444",
                        "rater_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
                        "rated_id": "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
                        "score": 5,
                        "feedback": "Clear explanations, great pacing.",
                        "created_at": "2026-11-12T12:05:30",
                    }
                }
            },
        },
        400: {"description": "Rated user is not the counterparty"},
        404: {"description": "Session not found"},
        409: {"description": "Session not completed, or already rated"},
    },
)
def create_rating(
    payload: RatingCreate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
) -> RatingRead:
    """Record the caller's rating.

    Example request body::

        {
            "session_id": "44444444-4444-4444-4444-444444444444",
            "rated_id": "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
            "score": 5,
            "feedback": "Clear explanations, great pacing."
        }
    """

    try:
        rating = rating_service.submit_rating(
            db,
            session_id=payload.session_id,
            rater_id=actor_id,
            rated_id=payload.rated_id,
            score=payload.score,
            feedback=payload.feedback,
        )
        db.commit()
        db.refresh(rating)
        return rating
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.get("", response_model=List[RatingRead], summary="Ratings a user received")
def list_ratings(
    *,
    user_id: UUID = Query(..., description="User whose received ratings to fetch"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[RatingRead]:
    ratings = rating_service.list_ratings_for_user(db, user_id=user_id, limit=limit, offset=offset)
    return list(ratings)


@router.get("/summary/{user_id}", response_model=RatingSummary, summary="Average rating of a user")
def get_rating_summary(user_id: UUID, db: Session = Depends(get_db)) -> RatingSummary:
    return RatingSummary(**rating_service.rating_summary(db, user_id=user_id))
