"""Teaching session booking model."""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utc_now


class SessionStatus(str, enum.Enum):
    """Closed set of session states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LocationType(str, enum.Enum):
    ONLINE = "online"
    ON_CAMPUS = "on_campus"


class CloseReason(str, enum.Enum):
    """Why a session reached a terminal state."""

    COMPLETED = "completed"
    AUTO_COMPLETED = "auto_completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class SessionRecord(Base):
    """One booking of a teacher's time by a learner.

    Records are never deleted; cancelled and completed sessions stay for audit.
    """

    __tablename__ = "teaching_sessions"
    __table_args__ = (
        CheckConstraint("teacher_id <> learner_id", name="teaching_sessions_participants_check"),
        CheckConstraint("duration > 0", name="teaching_sessions_duration_positive"),
        CheckConstraint("end_time > start_time", name="teaching_sessions_time_order"),
        CheckConstraint(
            "location_type <> 'on_campus' OR location_details IS NOT NULL",
            name="teaching_sessions_campus_location",
        ),
        Index("teaching_sessions_status_start_idx", "status", "start_time"),
    )

    session_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    learner_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    skill_id = Column(Uuid(as_uuid=True), ForeignKey("skills.skill_id", ondelete="RESTRICT"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)
    location_type = Column(
        Enum(LocationType, name="location_type", values_callable=_values),
        nullable=False,
    )
    location_details = Column(String(500))
    status = Column(
        Enum(SessionStatus, name="session_status", values_callable=_values),
        nullable=False,
        default=SessionStatus.PENDING,
    )
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)
    closed_at = Column(DateTime)
    closed_by = Column(Uuid(as_uuid=True))
    close_reason = Column(Enum(CloseReason, name="session_close_reason", values_callable=_values))

    skill = relationship("Skill")
    ledger_entries = relationship(
        "TransactionEntry",
        back_populates="session",
        order_by="TransactionEntry.created_at",
    )
    ratings = relationship("Rating", back_populates="session")

    def participants(self) -> tuple:
        return (self.teacher_id, self.learner_id)

    def counterparty_of(self, user_id):
        """Return the other participant, or ``None`` if ``user_id`` is not one."""

        if user_id == self.teacher_id:
            return self.learner_id
        if user_id == self.learner_id:
            return self.teacher_id
        return None
