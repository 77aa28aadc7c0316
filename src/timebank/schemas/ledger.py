"""Pydantic schemas for balances and transaction history."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import TransactionKind


class BalanceRead(BaseModel):
    """Spendable and earmarked credits of one user."""

    user_id: UUID
    available: int = Field(..., ge=0)
    reserved: int = Field(..., ge=0)


class GrantCreate(BaseModel):
    amount: int = Field(..., gt=0, description="Credits to add to the account.")


class TransactionRead(BaseModel):
    """Transaction log entry."""

    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    session_id: Optional[UUID]
    from_user_id: Optional[UUID]
    to_user_id: UUID
    amount: int
    kind: TransactionKind
    created_at: datetime


class BalanceSnapshot(BaseModel):
    available: int
    reserved: int


class AccountAudit(BaseModel):
    """Stored balance compared with the balance rebuilt from the log."""

    user_id: UUID
    stored: BalanceSnapshot
    reconstructed: BalanceSnapshot
    consistent: bool
