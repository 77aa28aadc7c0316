"""Public schema exports."""

from .ledger import AccountAudit, BalanceRead, BalanceSnapshot, GrantCreate, TransactionRead
from .rating import RatingCreate, RatingRead, RatingSummary
from .session import SessionCreate, SessionRead

__all__ = [
	"AccountAudit",
	"BalanceRead",
	"BalanceSnapshot",
	"GrantCreate",
	"RatingCreate",
	"RatingRead",
	"RatingSummary",
	"SessionCreate",
	"SessionRead",
	"TransactionRead",
]
