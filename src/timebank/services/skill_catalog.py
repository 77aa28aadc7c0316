"""Read-only lookups against the skill catalog."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Skill


def teacher_for_skill(session: Session, skill_id: UUID) -> Optional[UUID]:
    """Return the teacher who offers ``skill_id``, or ``None`` for an unknown skill."""

    stmt = select(Skill.teacher_id).where(Skill.skill_id == skill_id)
    return session.execute(stmt).scalar_one_or_none()
