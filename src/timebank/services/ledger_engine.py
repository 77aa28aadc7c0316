"""Session lifecycle and credit ledger engine.

Every operation that moves credits goes through :class:`LedgerEngine`. Each
public method is one unit of work: it takes the in-process locks, row-locks
the affected database rows, applies the change, commits and only then
releases the locks. A failure anywhere rolls the transaction back, so callers
either see the finished operation or nothing at all.

Lock order is global: the session lock first, then account locks sorted by
account id (see :class:`~timebank.core.locks.KeyedLocks`).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.errors import Forbidden, InvalidState, LedgerRuleViolation, NotFound, ValidationError
from ..core.locks import KeyedLocks, account_key, session_key
from ..models import CloseReason, CreditAccount, SessionRecord, SessionStatus, TransactionKind
from ..utils.datetime import to_naive_utc, utc_now
from . import skill_catalog, transaction_log_service
from .session_state import ensure_transition, validate_booking

logger = logging.getLogger(__name__)

_CANCEL_REASONS = frozenset({CloseReason.CANCELLED, CloseReason.EXPIRED})


def _resolve_now(now: Optional[datetime]) -> datetime:
    return to_naive_utc(now) if now else utc_now()


class LedgerEngine:
    """Coordinates session transitions with account balances and the log."""

    def __init__(self, *, locks: Optional[KeyedLocks] = None, settings: Optional[Settings] = None) -> None:
        self.locks = locks if locks is not None else KeyedLocks()
        self.settings = settings or get_settings()

    # -- unit of work helpers -------------------------------------------------

    @contextmanager
    def _unit_of_work(self, db: Session, operation: str) -> Iterator[None]:
        try:
            yield
            db.commit()
        except LedgerRuleViolation as exc:
            db.rollback()
            logger.info("%s rejected: %s", operation, exc.detail)
            raise
        except Exception:
            db.rollback()
            logger.warning("%s failed, transaction rolled back", operation, exc_info=True)
            raise

    def _load_session(self, db: Session, session_id: UUID, *, for_update: bool = False) -> SessionRecord:
        stmt = select(SessionRecord).where(SessionRecord.session_id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        record = db.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()
        if record is None:
            raise NotFound(f"Session {session_id} not found")
        return record

    @contextmanager
    def _session_scope(self, db: Session, session_id: UUID, operation: str) -> Iterator[SessionRecord]:
        """Hold the session and both participants' accounts for one unit of work."""

        with self.locks.hold(session_key(session_id)):
            record = self._load_session(db, session_id)
            participants = (record.teacher_id, record.learner_id)
            with self.locks.hold(*(account_key(user_id) for user_id in participants)):
                with self._unit_of_work(db, operation):
                    yield self._load_session(db, session_id, for_update=True)

    def _lock_accounts(self, db: Session, *user_ids: UUID) -> dict[UUID, CreditAccount]:
        """Row-lock accounts in canonical order, opening missing ones at zero."""

        accounts: dict[UUID, CreditAccount] = {}
        for user_id in sorted(set(user_ids), key=str):
            stmt = (
                select(CreditAccount)
                .where(CreditAccount.user_id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            account = db.execute(stmt).scalar_one_or_none()
            if account is None:
                account = CreditAccount(user_id=user_id, available=0, reserved=0)
                db.add(account)
                db.flush()
            accounts[user_id] = account
        return accounts

    def _transition(
        self,
        db: Session,
        record: SessionRecord,
        target: SessionStatus,
        *,
        now: datetime,
        **values,
    ) -> None:
        """Compare-and-set the status column from its current value to ``target``."""

        current = SessionStatus(record.status)
        ensure_transition(current, target)
        result = db.execute(
            update(SessionRecord)
            .where(SessionRecord.session_id == record.session_id, SessionRecord.status == current)
            .values(status=target, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState(f"Session {record.session_id} changed concurrently; retry the request.")
        db.refresh(record)

    @staticmethod
    def _ensure_participant(record: SessionRecord, actor_id: Optional[UUID]) -> None:
        if actor_id is not None and actor_id not in record.participants():
            raise Forbidden("Only the session's teacher or learner may do this.")

    # -- booking ----------------------------------------------------------------

    def book_session(
        self,
        db: Session,
        *,
        learner_id: UUID,
        teacher_id: UUID,
        skill_id: UUID,
        start_time: datetime,
        end_time: datetime,
        duration: int,
        location_type,
        location_details: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """Create a pending session and reserve its credits on the learner's account."""

        now = _resolve_now(now)
        start = to_naive_utc(start_time)
        end = to_naive_utc(end_time)
        location, details = validate_booking(
            learner_id=learner_id,
            teacher_id=teacher_id,
            start_time=start,
            end_time=end,
            duration=duration,
            location_type=location_type,
            location_details=location_details,
            now=now,
            max_session_minutes=self.settings.max_session_minutes,
        )

        offered_by = skill_catalog.teacher_for_skill(db, skill_id)
        if offered_by is None:
            raise ValidationError(f"Skill {skill_id} not found")
        if offered_by != teacher_id:
            raise ValidationError("Skill is not offered by the requested teacher.")

        with self.locks.hold(account_key(learner_id)):
            with self._unit_of_work(db, "booking"):
                account = self._lock_accounts(db, learner_id)[learner_id]
                account.reserve(duration)
                account.updated_at = now

                record = SessionRecord(
                    teacher_id=teacher_id,
                    learner_id=learner_id,
                    skill_id=skill_id,
                    start_time=start,
                    end_time=end,
                    duration=duration,
                    location_type=location,
                    location_details=details,
                    status=SessionStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                db.add(record)
                db.flush()  # Assign session_id before the reserve entry

                transaction_log_service.append(
                    db,
                    session_id=record.session_id,
                    from_user_id=learner_id,
                    to_user_id=teacher_id,
                    amount=duration,
                    kind=TransactionKind.RESERVE,
                    created_at=now,
                )
                session_id = record.session_id

        logger.info("session %s booked: %s credits reserved for learner %s", session_id, duration, learner_id)
        return record

    # -- transitions --------------------------------------------------------------

    def confirm_session(
        self,
        db: Session,
        *,
        session_id: UUID,
        actor_id: UUID,
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """Teacher accepts a pending booking. No credits move."""

        now = _resolve_now(now)
        with self._session_scope(db, session_id, "confirm") as record:
            if actor_id != record.teacher_id:
                raise Forbidden("Only the teacher can confirm a session.")
            self._transition(db, record, SessionStatus.CONFIRMED, now=now)

        logger.info("session %s confirmed by teacher %s", session_id, actor_id)
        return record

    def cancel_session(
        self,
        db: Session,
        *,
        session_id: UUID,
        actor_id: Optional[UUID],
        reason: CloseReason = CloseReason.CANCELLED,
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """Cancel a pending or confirmed session and release its reservation."""

        if reason not in _CANCEL_REASONS:
            raise ValidationError(f"{reason.value!r} is not a cancellation reason")
        now = _resolve_now(now)
        with self._session_scope(db, session_id, "cancel") as record:
            self._ensure_participant(record, actor_id)
            self._release(db, record, actor_id=actor_id, reason=reason, now=now)

        logger.info("session %s cancelled (%s); %s credits released", session_id, reason.value, record.duration)
        return record

    def _release(
        self,
        db: Session,
        record: SessionRecord,
        *,
        actor_id: Optional[UUID],
        reason: CloseReason,
        now: datetime,
    ) -> None:
        ensure_transition(record.status, SessionStatus.CANCELLED)

        learner = self._lock_accounts(db, record.learner_id)[record.learner_id]
        learner.release(record.duration)
        learner.updated_at = now
        db.flush()

        transaction_log_service.append(
            db,
            session_id=record.session_id,
            from_user_id=record.learner_id,
            to_user_id=record.teacher_id,
            amount=record.duration,
            kind=TransactionKind.RELEASE,
            created_at=now,
        )
        self._transition(
            db,
            record,
            SessionStatus.CANCELLED,
            now=now,
            closed_at=now,
            closed_by=actor_id,
            close_reason=reason,
        )

    def complete_session(
        self,
        db: Session,
        *,
        session_id: UUID,
        actor_id: Optional[UUID],
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """Complete a confirmed session and settle its credits.

        Completing an already completed session returns it unchanged, so
        retried requests never settle twice. ``actor_id`` is ``None`` when the
        sweep completes the session.
        """

        now = _resolve_now(now)
        with self._session_scope(db, session_id, "completion") as record:
            self._ensure_participant(record, actor_id)
            if record.status == SessionStatus.COMPLETED:
                logger.info("session %s already completed; nothing to settle", session_id)
                return record
            reason = CloseReason.AUTO_COMPLETED if actor_id is None else CloseReason.COMPLETED
            self.settle(db, record, now=now, actor_id=actor_id, reason=reason)

        logger.info(
            "session %s settled: %s credits from learner %s to teacher %s",
            session_id,
            record.duration,
            record.learner_id,
            record.teacher_id,
        )
        return record

    def settle(
        self,
        db: Session,
        record: SessionRecord,
        *,
        now: datetime,
        actor_id: Optional[UUID] = None,
        reason: CloseReason = CloseReason.COMPLETED,
    ) -> None:
        """Move the reserved credits from learner to teacher and mark the session completed.

        Callers hold the session and both account locks inside an open unit of
        work; if any step raises, that unit of work rolls every step back.
        """

        ensure_transition(record.status, SessionStatus.COMPLETED)

        amount = record.duration
        accounts = self._lock_accounts(db, record.teacher_id, record.learner_id)
        learner = accounts[record.learner_id]
        teacher = accounts[record.teacher_id]

        learner.settle_spend(amount)
        teacher.settle_earn(amount)
        learner.updated_at = now
        teacher.updated_at = now
        db.flush()

        for kind in (TransactionKind.SETTLE_SPEND, TransactionKind.SETTLE_EARN):
            transaction_log_service.append(
                db,
                session_id=record.session_id,
                from_user_id=record.learner_id,
                to_user_id=record.teacher_id,
                amount=amount,
                kind=kind,
                created_at=now,
            )
        db.flush()

        self._transition(
            db,
            record,
            SessionStatus.COMPLETED,
            now=now,
            closed_at=now,
            closed_by=actor_id,
            close_reason=reason,
        )

    # -- balances -----------------------------------------------------------------

    def grant_credits(
        self,
        db: Session,
        *,
        user_id: UUID,
        amount: int,
        actor_id: UUID,
        now: Optional[datetime] = None,
    ) -> CreditAccount:
        """Add credits to an account. Only configured admins may grant."""

        if actor_id not in self.settings.admin_user_ids:
            raise Forbidden("Only administrators can grant credits.")

        now = _resolve_now(now)
        with self.locks.hold(account_key(user_id)):
            with self._unit_of_work(db, "grant"):
                account = self._lock_accounts(db, user_id)[user_id]
                account.grant(amount)
                account.updated_at = now
                transaction_log_service.append(
                    db,
                    session_id=None,
                    from_user_id=None,
                    to_user_id=user_id,
                    amount=amount,
                    kind=TransactionKind.GRANT,
                    created_at=now,
                )

        logger.info("granted %s credits to %s by admin %s", amount, user_id, actor_id)
        return account

    def get_balance(self, db: Session, user_id: UUID) -> dict:
        account = db.get(CreditAccount, user_id, populate_existing=True)
        if account is None:
            return {"user_id": user_id, "available": 0, "reserved": 0}
        return {"user_id": user_id, "available": account.available, "reserved": account.reserved}

    # -- sweeps -------------------------------------------------------------------

    def expire_stale_sessions(self, db: Session, *, now: Optional[datetime] = None) -> int:
        """Cancel pending sessions whose start time passed without confirmation."""

        now = _resolve_now(now)
        stmt = select(SessionRecord.session_id).where(
            SessionRecord.status == SessionStatus.PENDING,
            SessionRecord.start_time <= now,
        )
        candidates = db.execute(stmt).scalars().all()
        db.rollback()  # End the read transaction before taking locks

        expired = 0
        for session_id in candidates:
            try:
                with self._session_scope(db, session_id, "expiry") as record:
                    if record.status != SessionStatus.PENDING:
                        logger.debug("session %s no longer pending; skipping expiry", session_id)
                        continue
                    self._release(db, record, actor_id=None, reason=CloseReason.EXPIRED, now=now)
            except LedgerRuleViolation as exc:
                logger.info("skipping expiry of session %s: %s", session_id, exc.detail)
                continue
            expired += 1
            logger.info("session %s expired; %s credits released", session_id, record.duration)
        return expired

    def auto_complete_sessions(self, db: Session, *, now: Optional[datetime] = None) -> int:
        """Settle confirmed sessions whose end time has passed."""

        now = _resolve_now(now)
        stmt = select(SessionRecord.session_id).where(
            SessionRecord.status == SessionStatus.CONFIRMED,
            SessionRecord.end_time <= now,
        )
        candidates = db.execute(stmt).scalars().all()
        db.rollback()

        completed = 0
        for session_id in candidates:
            try:
                with self._session_scope(db, session_id, "auto-completion") as record:
                    if record.status != SessionStatus.CONFIRMED:
                        logger.debug("session %s no longer confirmed; skipping", session_id)
                        continue
                    self.settle(db, record, now=now, actor_id=None, reason=CloseReason.AUTO_COMPLETED)
            except LedgerRuleViolation as exc:
                logger.info("skipping auto-completion of session %s: %s", session_id, exc.detail)
                continue
            completed += 1
            logger.info("session %s auto-completed", session_id)
        return completed


@lru_cache(maxsize=1)
def get_ledger_engine() -> LedgerEngine:
    """Return the process-wide engine so requests and the sweep share one lock table."""

    return LedgerEngine()
