"""Post-completion ratings between session participants."""

from __future__ import annotations

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import DuplicateRating, InvalidCounterparty, InvalidState, NotFound, ValidationError
from ..models import Rating, SessionRecord, SessionStatus

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


def _ensure_session(session: Session, session_id: UUID) -> SessionRecord:
    stmt = select(SessionRecord).where(SessionRecord.session_id == session_id)
    record = session.execute(stmt).scalar_one_or_none()
    if record is None:
        raise NotFound(f"Session {session_id} not found")
    return record


def submit_rating(
    session: Session,
    *,
    session_id: UUID,
    rater_id: UUID,
    rated_id: UUID,
    score: int,
    feedback: Optional[str] = None,
) -> Rating:
    """Insert a rating after checking state, counterparty and uniqueness."""

    if not isinstance(score, int) or isinstance(score, bool) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}.")

    record = _ensure_session(session, session_id)
    if record.status != SessionStatus.COMPLETED:
        raise InvalidState("Sessions can only be rated once they are completed.")

    if rated_id is None or record.counterparty_of(rater_id) != rated_id:
        raise InvalidCounterparty("Ratings must be given to the other participant of the session.")

    existing_stmt = select(Rating.rating_id).where(
        Rating.session_id == session_id,
        Rating.rater_id == rater_id,
    )
    if session.execute(existing_stmt).scalar_one_or_none() is not None:
        raise DuplicateRating("You have already rated this session.")

    rating = Rating(
        session_id=session_id,
        rater_id=rater_id,
        rated_id=rated_id,
        score=score,
        feedback=feedback.strip() if feedback and feedback.strip() else None,
    )
    session.add(rating)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost a race with the same rater; the unique constraint decides.
        raise DuplicateRating("You have already rated this session.") from exc

    logger.info("rating %s recorded for session %s by %s", rating.rating_id, session_id, rater_id)
    return rating


def list_ratings_for_user(
    session: Session,
    *,
    user_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[Rating]:
    """Return ratings the user received, newest first."""

    stmt = (
        select(Rating)
        .where(Rating.rated_id == user_id)
        .order_by(Rating.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()


def rating_summary(session: Session, *, user_id: UUID) -> dict:
    stmt = select(func.avg(Rating.score), func.count(Rating.rating_id)).where(Rating.rated_id == user_id)
    average, count = session.execute(stmt).one()
    return {
        "user_id": user_id,
        "average_score": round(float(average), 2) if average is not None else 0.0,
        "rating_count": int(count or 0),
    }
