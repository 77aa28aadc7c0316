"""Read-side queries over teaching sessions."""

from __future__ import annotations

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models import SessionRecord, SessionStatus


def get_session(session: Session, *, session_id: UUID) -> SessionRecord:
    record = session.get(SessionRecord, session_id)
    if record is None:
        raise NotFound(f"Session {session_id} not found")
    return record


def list_sessions_for_user(
    session: Session,
    *,
    user_id: UUID,
    status: Optional[SessionStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[SessionRecord]:
    """Return sessions where the user teaches or learns, latest start first."""

    stmt = (
        select(SessionRecord)
        .where(or_(SessionRecord.teacher_id == user_id, SessionRecord.learner_id == user_id))
        .order_by(SessionRecord.start_time.desc())
        .offset(offset)
        .limit(limit)
    )
    if status:
        stmt = stmt.where(SessionRecord.status == status)
    return session.execute(stmt).scalars().all()
