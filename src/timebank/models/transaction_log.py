"""Append-only log of every credit movement."""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utc_now


class TransactionKind(str, enum.Enum):
    """Ledger movement classification."""

    RESERVE = "reserve"
    RELEASE = "release"
    SETTLE_SPEND = "settle-spend"
    SETTLE_EARN = "settle-earn"
    GRANT = "grant"


class TransactionEntry(Base):
    """Immutable ledger entry.

    Session entries always record the learner as ``from_user_id`` and the
    teacher as ``to_user_id``; ``kind`` says which balance moved. Grants have
    no session and no sender.
    """

    __tablename__ = "transaction_log"
    __table_args__ = (
        CheckConstraint("amount > 0", name="transaction_log_amount_positive"),
        CheckConstraint(
            "(kind = 'grant' AND session_id IS NULL) OR (kind <> 'grant' AND session_id IS NOT NULL)",
            name="transaction_log_session_scope",
        ),
        Index("transaction_log_from_user_idx", "from_user_id"),
        Index("transaction_log_to_user_idx", "to_user_id"),
    )

    entry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("teaching_sessions.session_id", ondelete="RESTRICT"),
        index=True,
    )
    from_user_id = Column(Uuid(as_uuid=True))
    to_user_id = Column(Uuid(as_uuid=True), nullable=False)
    amount = Column(Integer, nullable=False)
    kind = Column(
        Enum(
            TransactionKind,
            name="transaction_kind",
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        nullable=False,
    )
    created_at = Column(DateTime, default=utc_now, nullable=False)

    session = relationship("SessionRecord", back_populates="ledger_entries")
