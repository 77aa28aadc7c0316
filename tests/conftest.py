import os
import uuid
from datetime import datetime, timedelta

# Configure before any timebank module reads settings.
os.environ.setdefault("TIMEBANK_DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("TIMEBANK_SCHEDULER_ENABLED", "false")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from timebank.core.config import Settings
from timebank.core.database import Base
from timebank.models import Skill
from timebank.services.ledger_engine import LedgerEngine

NOW = datetime(2026, 11, 2, 9, 0, 0)
ADMIN_ID = uuid.UUID("99999999-9999-9999-9999-999999999999")


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'timebank.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _enable_wal(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(
        admin_user_ids=[ADMIN_ID],
        scheduler_enabled=False,
        max_session_minutes=480,
    )


@pytest.fixture
def ledger(settings):
    return LedgerEngine(settings=settings)


@pytest.fixture
def teacher_id():
    return uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")


@pytest.fixture
def learner_id():
    return uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")


@pytest.fixture
def skill_id(db, teacher_id):
    skill = Skill(skill_id=uuid.UUID("11111111-1111-1111-1111-111111111111"), teacher_id=teacher_id, title="Intro to Go")
    db.add(skill)
    db.commit()
    return skill.skill_id


@pytest.fixture
def fund(ledger):
    def _fund(session, user_id, amount):
        ledger.grant_credits(session, user_id=user_id, amount=amount, actor_id=ADMIN_ID, now=NOW)

    return _fund


@pytest.fixture
def book(ledger, teacher_id, learner_id, skill_id):
    """Book a session starting one day after ``NOW`` unless told otherwise."""

    def _book(session, *, duration=60, start=None, learner=None, now=NOW, **overrides):
        start = start or NOW + timedelta(days=1)
        params = dict(
            learner_id=learner or learner_id,
            teacher_id=teacher_id,
            skill_id=skill_id,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            duration=duration,
            location_type="online",
            location_details=None,
            now=now,
        )
        params.update(overrides)
        return ledger.book_session(session, **params)

    return _book
