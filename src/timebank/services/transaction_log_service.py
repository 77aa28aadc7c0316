"""Append-only access to the credit transaction log."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..models import CreditAccount, TransactionEntry, TransactionKind


def append(
    session: Session,
    *,
    session_id: Optional[UUID],
    from_user_id: Optional[UUID],
    to_user_id: UUID,
    amount: int,
    kind: TransactionKind,
    created_at: datetime,
) -> TransactionEntry:
    """Add one entry to the caller's unit of work."""

    entry = TransactionEntry(
        session_id=session_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=amount,
        kind=kind,
        created_at=created_at,
    )
    session.add(entry)
    return entry


def list_for_user(
    session: Session,
    *,
    user_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[TransactionEntry]:
    """Return entries where the user sent or received, newest first."""

    stmt = (
        select(TransactionEntry)
        .where(or_(TransactionEntry.from_user_id == user_id, TransactionEntry.to_user_id == user_id))
        .order_by(TransactionEntry.created_at.desc(), TransactionEntry.entry_id)
        .offset(offset)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()


def list_for_session(session: Session, *, session_id: UUID) -> Sequence[TransactionEntry]:
    stmt = (
        select(TransactionEntry)
        .where(TransactionEntry.session_id == session_id)
        .order_by(TransactionEntry.created_at.asc(), TransactionEntry.kind)
    )
    return session.execute(stmt).scalars().all()


def _sums_by_kind(session: Session, column, user_id: UUID) -> dict[TransactionKind, int]:
    stmt = (
        select(TransactionEntry.kind, func.coalesce(func.sum(TransactionEntry.amount), 0))
        .where(column == user_id)
        .group_by(TransactionEntry.kind)
    )
    return {TransactionKind(kind): int(total) for kind, total in session.execute(stmt).all()}


def reconstruct_balance(session: Session, *, user_id: UUID) -> dict[str, int]:
    """Replay the log into the balances the account should hold.

    Reserve, release and spend entries move the learner (``from_user_id``);
    earn and grant entries move the recipient (``to_user_id``).
    """

    as_learner = _sums_by_kind(session, TransactionEntry.from_user_id, user_id)
    as_recipient = _sums_by_kind(session, TransactionEntry.to_user_id, user_id)

    reserved_total = as_learner.get(TransactionKind.RESERVE, 0)
    released_total = as_learner.get(TransactionKind.RELEASE, 0)
    spent_total = as_learner.get(TransactionKind.SETTLE_SPEND, 0)
    earned_total = as_recipient.get(TransactionKind.SETTLE_EARN, 0)
    granted_total = as_recipient.get(TransactionKind.GRANT, 0)

    return {
        "available": granted_total + earned_total - reserved_total + released_total,
        "reserved": reserved_total - released_total - spent_total,
    }


def audit_account(session: Session, *, user_id: UUID) -> dict:
    """Compare the stored account against the balance rebuilt from the log."""

    account = session.get(CreditAccount, user_id)
    stored = {
        "available": account.available if account else 0,
        "reserved": account.reserved if account else 0,
    }
    expected = reconstruct_balance(session, user_id=user_id)
    return {
        "user_id": user_id,
        "stored": stored,
        "reconstructed": expected,
        "consistent": stored == expected,
    }
