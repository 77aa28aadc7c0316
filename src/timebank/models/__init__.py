"""SQLAlchemy models for Timebank."""

from .credit_account import CreditAccount
from .rating import Rating
from .session_record import CloseReason, LocationType, SessionRecord, SessionStatus
from .skill import Skill
from .transaction_log import TransactionEntry, TransactionKind

__all__ = [
    "CloseReason",
    "CreditAccount",
    "LocationType",
    "Rating",
    "SessionRecord",
    "SessionStatus",
    "Skill",
    "TransactionEntry",
    "TransactionKind",
]
