"""Credit balance, history and admin grant endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import LedgerRuleViolation
from ...schemas import AccountAudit, BalanceRead, GrantCreate, TransactionRead
from ...services import transaction_log_service
from ...services.ledger_engine import LedgerEngine, get_ledger_engine
from ..deps import get_actor_id, http_error

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get(
    "/{user_id}/balance",
    response_model=BalanceRead,
    summary="Available and reserved credits",
    responses={
        200: {
            "description": "Current balance",
            "content": {
                "application/json": {
                    "example": {
                        "user_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
                        "available": 40,
                        "reserved": 60,
                    }
                }
            },
        }
    },
)
def get_balance(
    user_id: UUID,
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> BalanceRead:
    return BalanceRead(**engine.get_balance(db, user_id))


@router.get("/{user_id}/transactions", response_model=List[TransactionRead], summary="Credit history")
def list_transactions(
    user_id: UUID,
    *,
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    """Entries where the user paid or was paid, newest first."""

    entries = transaction_log_service.list_for_user(db, user_id=user_id, limit=limit, offset=offset)
    return list(entries)


@router.get("/{user_id}/audit", response_model=AccountAudit, summary="Check a balance against the log")
def audit_account(user_id: UUID, db: Session = Depends(get_db)) -> AccountAudit:
    return AccountAudit(**transaction_log_service.audit_account(db, user_id=user_id))


@router.post(
    "/{user_id}/grants",
    response_model=BalanceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Grant credits (admin only)",
    responses={403: {"description": "Caller is not an administrator"}},
)
def grant_credits(
    user_id: UUID,
    payload: GrantCreate,
    actor_id: UUID = Depends(get_actor_id),
    db: Session = Depends(get_db),
    engine: LedgerEngine = Depends(get_ledger_engine),
) -> BalanceRead:
    try:
        engine.grant_credits(db, user_id=user_id, amount=payload.amount, actor_id=actor_id)
    except LedgerRuleViolation as exc:
        db.rollback()
        raise http_error(exc) from exc
    return BalanceRead(**engine.get_balance(db, user_id))
