"""Service layer exports."""

from . import (
	ledger_engine,
	rating_service,
	session_queries,
	session_state,
	skill_catalog,
	transaction_log_service,
)

__all__ = [
	"ledger_engine",
	"rating_service",
	"session_queries",
	"session_state",
	"skill_catalog",
	"transaction_log_service",
]
