"""Read-only projection of the external skill catalog."""

import uuid

from sqlalchemy import Column, DateTime, String, Uuid

from ..core.database import Base
from ..utils.datetime import utc_now


class Skill(Base):
    """Skill offered by a teacher; rows are owned by the catalog service."""

    __tablename__ = "skills"

    skill_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
