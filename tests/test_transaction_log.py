from datetime import timedelta

from conftest import NOW
from timebank.models import CreditAccount, TransactionKind
from timebank.services import transaction_log_service


def test_history_lists_both_sides_newest_first(db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db, duration=60, now=NOW + timedelta(minutes=1))
    ledger.confirm_session(db, session_id=record.session_id, actor_id=teacher_id)
    ledger.complete_session(db, session_id=record.session_id, actor_id=learner_id, now=NOW + timedelta(minutes=2))

    learner_history = transaction_log_service.list_for_user(db, user_id=learner_id)
    teacher_history = transaction_log_service.list_for_user(db, user_id=teacher_id)

    assert learner_history[-1].kind == TransactionKind.GRANT
    assert learner_history[-2].kind == TransactionKind.RESERVE
    assert {entry.kind for entry in learner_history[:2]} == {TransactionKind.SETTLE_SPEND, TransactionKind.SETTLE_EARN}
    # Session entries name both participants, so the teacher sees all three.
    assert len(teacher_history) == 3


def test_reconstruction_matches_stored_balances(db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 150)
    fund(db, teacher_id, 20)
    done = book(db, duration=60)
    open_booking = book(db, duration=30, start=NOW + timedelta(days=2))
    dropped = book(db, duration=45, start=NOW + timedelta(days=3))
    ledger.confirm_session(db, session_id=done.session_id, actor_id=teacher_id)
    ledger.complete_session(db, session_id=done.session_id, actor_id=teacher_id)
    ledger.cancel_session(db, session_id=dropped.session_id, actor_id=learner_id)

    assert transaction_log_service.reconstruct_balance(db, user_id=learner_id) == {"available": 60, "reserved": 30}
    assert transaction_log_service.reconstruct_balance(db, user_id=teacher_id) == {"available": 80, "reserved": 0}
    for user_id in (learner_id, teacher_id):
        report = transaction_log_service.audit_account(db, user_id=user_id)
        assert report["consistent"], report
    assert open_booking.status.value == "pending"


def test_audit_flags_tampered_balance(db, ledger, fund, learner_id):
    fund(db, learner_id, 100)
    account = db.get(CreditAccount, learner_id)
    account.available = 500
    db.commit()

    report = transaction_log_service.audit_account(db, user_id=learner_id)

    assert report["consistent"] is False
    assert report["stored"] == {"available": 500, "reserved": 0}
    assert report["reconstructed"] == {"available": 100, "reserved": 0}
