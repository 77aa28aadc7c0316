"""Session booking and lifecycle endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import Forbidden, LedgerRuleViolation
from ...models import SessionStatus
from ...schemas import SessionCreate, SessionRead, TransactionRead
from ...services import session_queries, transaction_log_service
from ...services.ledger_engine import LedgerEngine, get_ledger_engine
from ..deps import get_actor_id, http_error

router = APIRouter(prefix="/sessions", tags=["sessions"])

_SESSION_EXAMPLE = {
    "session_id": "44444444-4444-4444-4444-444444444444",
    "teacher_id": "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
    "learner_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
    "skill_id": "11111111-1111-1111-1111-111111111111",
    "start_time": "2026-11-12T10:00:00",
    "end_time": "2026-11-12T11:00:00",
    "duration": 60,
    "location_type": "on_campus",
    "location_details": "Library, room 2.14",
    "status": "pending",
    "created_at": "2026-11-01T09:15:30",
    "updated_at": "2026-11-01T09:15:30",
    "closed_at": None,
    "closed_by": None,
    "close_reason": None,
}


@router.post(
    "",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Book a session",
    responses={
        201: {
            "description": "Session booked and credits reserved",
            "content": {"application/json": {"example": _SESSION_EXAMPLE}},
        },
        402: {"description": "Not enough available credits"},
        422: {"description": "Invalid booking request"},
    },
)
def book_session(
    payload: SessionCreate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> SessionRead:
    """Book a teacher's time; the caller is the learner.

    Example request body::

        {
            "teacher_id": "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
            "skill_id": "11111111-1111-1111-1111-111111111111",
            "start_time": "2026-11-12T10:00:00Z",
            "end_time": "2026-11-12T11:00:00Z",
            "duration": 60,
            "location_type": "on_campus",
            "location_details": "Library, room 2.14"
        }
    """

    try:
        return engine.book_session(
            db,
            learner_id=actor_id,
            teacher_id=payload.teacher_id,
            skill_id=payload.skill_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            duration=payload.duration,
            location_type=payload.location_type,
            location_details=payload.location_details,
        )
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.get("", response_model=List[SessionRead], summary="List the caller's sessions")
def list_sessions(
    *,
    status_filter: Optional[SessionStatus] = Query(None, alias="status", description="Only sessions in this state"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
) -> List[SessionRead]:
    """Sessions where the caller is teacher or learner, latest first."""

    sessions = session_queries.list_sessions_for_user(
        db,
        user_id=actor_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return list(sessions)


def _participant_session(db: Session, session_id: UUID, actor_id: UUID):
    record = session_queries.get_session(db, session_id=session_id)
    if actor_id not in record.participants():
        raise Forbidden("Only the session's teacher or learner may view it.")
    return record


@router.get("/{session_id}", response_model=SessionRead, summary="Get a session")
def get_session(
    session_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
) -> SessionRead:
    try:
        return _participant_session(db, session_id, actor_id)
    except LedgerRuleViolation as exc:
        raise http_error(exc) from exc


@router.post(
    "/{session_id}/confirm",
    response_model=SessionRead,
    summary="Confirm a pending session",
    responses={403: {"description": "Caller is not the teacher"}, 409: {"description": "Session is not pending"}},
)
def confirm_session(
    session_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> SessionRead:
    try:
        return engine.confirm_session(db, session_id=session_id, actor_id=actor_id)
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.post(
    "/{session_id}/cancel",
    response_model=SessionRead,
    summary="Cancel a session and release its credits",
    responses={403: {"description": "Caller is not a participant"}, 409: {"description": "Session already closed"}},
)
def cancel_session(
    session_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> SessionRead:
    try:
        return engine.cancel_session(db, session_id=session_id, actor_id=actor_id)
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.post(
    "/{session_id}/complete",
    response_model=SessionRead,
    summary="Complete a session and settle credits",
    responses={
        200: {"description": "Session completed (also returned when it was already completed)"},
        403: {"description": "Caller is not a participant"},
        409: {"description": "Session is not confirmed"},
    },
)
def complete_session(
    session_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> SessionRead:
    """Settle the session's credits to the teacher. Safe to retry."""

    try:
        return engine.complete_session(db, session_id=session_id, actor_id=actor_id)
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc


@router.get(
    "/{session_id}/transactions",
    response_model=List[TransactionRead],
    summary="Ledger entries of a session",
)
def session_transactions(
    session_id: UUID,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    try:
        _participant_session(db, session_id, actor_id)
    except LedgerRuleViolation as exc:
        raise http_error(exc) from exc
    return list(transaction_log_service.list_for_session(db, session_id=session_id))
