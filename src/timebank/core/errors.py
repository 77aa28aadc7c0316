"""Ledger error taxonomy shared by the engine, rating gate and routers."""

from __future__ import annotations


class LedgerRuleViolation(Exception):
    """Raised when a ledger or session rule is violated.

    Nothing has been written when one of these reaches a caller.
    """

    error_code = "rule_violation"
    default_status = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code or self.default_status


class ValidationError(LedgerRuleViolation):
    """Malformed booking or rating input."""

    error_code = "validation_error"
    default_status = 422


class InsufficientFunds(LedgerRuleViolation):
    """The learner's available balance cannot cover the reservation."""

    error_code = "insufficient_funds"
    default_status = 402


class InvalidState(LedgerRuleViolation):
    """The requested transition is not legal from the current status."""

    error_code = "invalid_state"
    default_status = 409


class Forbidden(LedgerRuleViolation):
    """The actor is not allowed to perform this operation on the session."""

    error_code = "forbidden"
    default_status = 403


class NotFound(LedgerRuleViolation):
    """The referenced session does not exist."""

    error_code = "not_found"
    default_status = 404


class InvalidCounterparty(LedgerRuleViolation):
    """The rated user is not the rater's counterparty on the session."""

    error_code = "invalid_counterparty"
    default_status = 400


class DuplicateRating(LedgerRuleViolation):
    """The rater has already rated this session."""

    error_code = "duplicate_rating"
    default_status = 409
