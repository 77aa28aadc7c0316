"""Per-user credit account holding available and reserved balances."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Uuid

from ..core.database import Base
from ..core.errors import InsufficientFunds, InvalidState, ValidationError
from ..utils.datetime import utc_now


def _require_positive(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError(f"Credit amount must be a positive integer, got {amount!r}.")


class CreditAccount(Base):
    """Balance row for one user.

    ``available`` is spendable on new bookings; ``reserved`` is earmarked for
    sessions that have not been settled yet. The mutators below are only
    called by the ledger engine while it holds the account's lock.
    """

    __tablename__ = "credit_accounts"
    __table_args__ = (
        CheckConstraint("available >= 0", name="credit_accounts_available_non_negative"),
        CheckConstraint("reserved >= 0", name="credit_accounts_reserved_non_negative"),
    )

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    available = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    def reserve(self, amount: int) -> None:
        _require_positive(amount)
        if self.available < amount:
            raise InsufficientFunds(
                f"Insufficient time credits: {amount} needed, {self.available} available."
            )
        self.available -= amount
        self.reserved += amount

    def release(self, amount: int) -> None:
        _require_positive(amount)
        if self.reserved < amount:
            raise InvalidState(f"Cannot release {amount} credits; only {self.reserved} reserved.")
        self.reserved -= amount
        self.available += amount

    def settle_spend(self, amount: int) -> None:
        _require_positive(amount)
        if self.reserved < amount:
            raise InvalidState(f"Cannot settle {amount} credits; only {self.reserved} reserved.")
        self.reserved -= amount

    def settle_earn(self, amount: int) -> None:
        _require_positive(amount)
        self.available += amount

    def grant(self, amount: int) -> None:
        _require_positive(amount)
        self.available += amount
