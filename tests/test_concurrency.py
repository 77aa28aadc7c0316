import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from sqlalchemy import select

from conftest import NOW
from timebank.core.errors import InsufficientFunds, InvalidState, LedgerRuleViolation
from timebank.models import SessionRecord, SessionStatus, TransactionEntry, TransactionKind


def _run_concurrently(*calls):
    barrier = threading.Barrier(len(calls))

    def _start(call):
        barrier.wait()
        try:
            return call()
        except LedgerRuleViolation as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(_start, call) for call in calls]
        return [future.result(timeout=60) for future in futures]


def test_concurrent_bookings_cannot_overspend(session_factory, db, ledger, fund, book, learner_id):
    fund(db, learner_id, 100)

    def _book(day):
        def call():
            with session_factory() as session:
                record = book(session, duration=60, start=NOW + timedelta(days=day))
                return record.session_id

        return call

    results = _run_concurrently(_book(1), _book(2))

    failures = [result for result in results if isinstance(result, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientFunds)
    assert ledger.get_balance(db, learner_id) == {"user_id": learner_id, "available": 40, "reserved": 60}
    assert len(db.execute(select(SessionRecord)).scalars().all()) == 1


def test_concurrent_completions_settle_once(session_factory, db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db, duration=60)
    session_id = record.session_id
    ledger.confirm_session(db, session_id=session_id, actor_id=teacher_id)

    def _complete(actor_id):
        def call():
            with session_factory() as session:
                completed = ledger.complete_session(session, session_id=session_id, actor_id=actor_id)
                return completed.status

        return call

    results = _run_concurrently(_complete(learner_id), _complete(teacher_id), _complete(learner_id))

    assert results == [SessionStatus.COMPLETED] * 3
    settled = db.execute(
        select(TransactionEntry.kind).where(
            TransactionEntry.session_id == session_id,
            TransactionEntry.kind.in_([TransactionKind.SETTLE_SPEND, TransactionKind.SETTLE_EARN]),
        )
    ).scalars().all()
    assert sorted(kind.value for kind in settled) == ["settle-earn", "settle-spend"]
    assert ledger.get_balance(db, teacher_id)["available"] == 60
    assert ledger.get_balance(db, learner_id) == {"user_id": learner_id, "available": 40, "reserved": 0}


def test_expiry_and_confirmation_race_has_one_winner(session_factory, db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db, duration=60, start=NOW + timedelta(hours=1))
    session_id = record.session_id

    def _confirm():
        with session_factory() as session:
            return ledger.confirm_session(session, session_id=session_id, actor_id=teacher_id).status

    def _expire():
        with session_factory() as session:
            return ledger.expire_stale_sessions(session, now=NOW + timedelta(hours=2))

    confirm_result, expired = _run_concurrently(_confirm, _expire)

    final = db.get(SessionRecord, session_id, populate_existing=True)
    balance = ledger.get_balance(db, learner_id)
    if expired == 1:
        assert isinstance(confirm_result, InvalidState)
        assert final.status == SessionStatus.CANCELLED
        assert (balance["available"], balance["reserved"]) == (100, 0)
    else:
        assert expired == 0
        assert confirm_result == SessionStatus.CONFIRMED
        assert final.status == SessionStatus.CONFIRMED
        assert (balance["available"], balance["reserved"]) == (40, 60)


def test_concurrent_cancels_release_once(session_factory, db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db, duration=60)
    session_id = record.session_id

    def _cancel(actor_id):
        def call():
            with session_factory() as session:
                return ledger.cancel_session(session, session_id=session_id, actor_id=actor_id).status

        return call

    results = _run_concurrently(_cancel(learner_id), _cancel(teacher_id))

    assert sorted(isinstance(result, InvalidState) for result in results) == [False, True]
    assert ledger.get_balance(db, learner_id) == {"user_id": learner_id, "available": 100, "reserved": 0}
