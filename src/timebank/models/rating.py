"""Post-session rating model."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utc_now


class Rating(Base):
    """A participant's score for the other side of a completed session."""

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("session_id", "rater_id", name="ratings_session_rater_unique"),
        CheckConstraint("score >= 1 AND score <= 5", name="ratings_score_range"),
        CheckConstraint("rater_id <> rated_id", name="ratings_rater_rated_check"),
    )

    rating_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("teaching_sessions.session_id", ondelete="RESTRICT"),
        nullable=False,
    )
    rater_id = Column(Uuid(as_uuid=True), nullable=False)
    rated_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    feedback = Column(String(1000))
    created_at = Column(DateTime, default=utc_now, nullable=False)

    session = relationship("SessionRecord", back_populates="ratings")
