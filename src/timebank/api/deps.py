"""Shared request dependencies for API routers."""

from uuid import UUID

from fastapi import Header, HTTPException

from ..core.errors import LedgerRuleViolation


def get_actor_id(
    x_user_id: UUID = Header(..., description="Authenticated caller, set by the identity provider."),
) -> UUID:
    """Return the caller identity the gateway vouches for."""

    return x_user_id


def http_error(exc: LedgerRuleViolation) -> HTTPException:
    """Translate a rule violation into a response clients can branch on."""

    return HTTPException(
        status_code=exc.status_code,
        detail={"message": exc.detail, "error": exc.error_code},
    )
