import inspect
from datetime import timedelta

from conftest import NOW
from timebank.core.config import Settings
from timebank.jobs import run_session_sweep
from timebank.models import SessionRecord, SessionStatus
from timebank.services.ledger_engine import LedgerEngine


def test_sweep_expires_and_auto_completes(db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 200)
    stale = book(db, duration=60, start=NOW + timedelta(hours=1))
    finished = book(db, duration=60, start=NOW + timedelta(hours=2))
    ledger.confirm_session(db, session_id=finished.session_id, actor_id=teacher_id)

    summary = run_session_sweep(db, ledger, current_time=NOW + timedelta(hours=4))

    assert summary == {"expired": 1, "auto_completed": 1}
    assert db.get(SessionRecord, stale.session_id).status == SessionStatus.CANCELLED
    assert db.get(SessionRecord, finished.session_id).status == SessionStatus.COMPLETED
    assert ledger.get_balance(db, learner_id) == {"user_id": learner_id, "available": 140, "reserved": 0}


def test_sweep_leaves_confirmed_sessions_when_auto_complete_disabled(db, fund, book, learner_id, teacher_id):
    engine = LedgerEngine(settings=Settings(auto_complete_enabled=False, scheduler_enabled=False))
    fund(db, learner_id, 100)
    record = book(db, duration=60, start=NOW + timedelta(hours=1))
    engine.confirm_session(db, session_id=record.session_id, actor_id=teacher_id)

    summary = run_session_sweep(db, engine, current_time=NOW + timedelta(hours=4))

    assert summary == {"expired": 0, "auto_completed": 0}
    assert db.get(SessionRecord, record.session_id).status == SessionStatus.CONFIRMED


def test_scheduled_sweep_runs_in_a_worker_thread(monkeypatch):
    from timebank.jobs import session_sweep

    calls = []
    monkeypatch.setattr(session_sweep, "run_session_sweep", lambda session, engine: calls.append(engine) or {})

    assert not inspect.iscoroutinefunction(session_sweep._execute_session_sweep)
    session_sweep._execute_session_sweep()
    assert len(calls) == 1
