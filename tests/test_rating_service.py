import uuid

import pytest

from timebank.core.errors import DuplicateRating, InvalidCounterparty, InvalidState, NotFound, ValidationError
from timebank.services import rating_service


@pytest.fixture
def completed_session(db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db, duration=60)
    ledger.confirm_session(db, session_id=record.session_id, actor_id=teacher_id)
    ledger.complete_session(db, session_id=record.session_id, actor_id=learner_id)
    return record.session_id


def test_learner_rates_teacher(db, completed_session, learner_id, teacher_id):
    rating = rating_service.submit_rating(
        db,
        session_id=completed_session,
        rater_id=learner_id,
        rated_id=teacher_id,
        score=5,
        feedback="  Clear explanations. ",
    )
    db.commit()

    assert rating.score == 5
    assert rating.feedback == "Clear explanations."
    assert rating.rated_id == teacher_id


def test_both_participants_may_rate_once(db, completed_session, learner_id, teacher_id):
    rating_service.submit_rating(db, session_id=completed_session, rater_id=learner_id, rated_id=teacher_id, score=4)
    rating_service.submit_rating(db, session_id=completed_session, rater_id=teacher_id, rated_id=learner_id, score=3)
    db.commit()

    with pytest.raises(DuplicateRating):
        rating_service.submit_rating(
            db, session_id=completed_session, rater_id=learner_id, rated_id=teacher_id, score=1
        )


def test_rating_pending_session_is_invalid_state(db, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db)

    with pytest.raises(InvalidState):
        rating_service.submit_rating(
            db, session_id=record.session_id, rater_id=learner_id, rated_id=teacher_id, score=5
        )


def test_rating_cancelled_session_is_invalid_state(db, ledger, fund, book, learner_id, teacher_id):
    fund(db, learner_id, 100)
    record = book(db)
    ledger.cancel_session(db, session_id=record.session_id, actor_id=learner_id)

    with pytest.raises(InvalidState):
        rating_service.submit_rating(
            db, session_id=record.session_id, rater_id=teacher_id, rated_id=learner_id, score=2
        )


@pytest.mark.parametrize("who", ["self", "stranger_rated", "stranger_rater"])
def test_rated_user_must_be_counterparty(db, completed_session, learner_id, teacher_id, who):
    stranger = uuid.uuid4()
    rater, rated = {
        "self": (learner_id, learner_id),
        "stranger_rated": (learner_id, stranger),
        "stranger_rater": (stranger, teacher_id),
    }[who]

    with pytest.raises(InvalidCounterparty):
        rating_service.submit_rating(db, session_id=completed_session, rater_id=rater, rated_id=rated, score=4)


@pytest.mark.parametrize("score", [0, 6, -1])
def test_score_out_of_range(db, completed_session, learner_id, teacher_id, score):
    with pytest.raises(ValidationError):
        rating_service.submit_rating(
            db, session_id=completed_session, rater_id=learner_id, rated_id=teacher_id, score=score
        )


def test_unknown_session(db, learner_id, teacher_id):
    with pytest.raises(NotFound):
        rating_service.submit_rating(db, session_id=uuid.uuid4(), rater_id=learner_id, rated_id=teacher_id, score=3)


def test_summary_and_listing(db, completed_session, learner_id, teacher_id):
    assert rating_service.rating_summary(db, user_id=teacher_id) == {
        "user_id": teacher_id,
        "average_score": 0.0,
        "rating_count": 0,
    }

    rating_service.submit_rating(db, session_id=completed_session, rater_id=learner_id, rated_id=teacher_id, score=4)
    db.commit()

    summary = rating_service.rating_summary(db, user_id=teacher_id)
    assert summary["average_score"] == 4.0
    assert summary["rating_count"] == 1
    received = rating_service.list_ratings_for_user(db, user_id=teacher_id)
    assert [rating.rater_id for rating in received] == [learner_id]
    assert rating_service.list_ratings_for_user(db, user_id=learner_id) == []
