"""Session state machine and booking validation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.errors import InvalidState, ValidationError
from ..models import LocationType, SessionStatus

# Every legal move; anything absent is rejected.
TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.CONFIRMED, SessionStatus.CANCELLED}),
    SessionStatus.CONFIRMED: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in TRANSITIONS[SessionStatus(current)]


def ensure_transition(current: SessionStatus, target: SessionStatus) -> None:
    """Raise ``InvalidState`` unless ``current -> target`` is in the transition table."""

    current = SessionStatus(current)
    if not can_transition(current, target):
        if current is SessionStatus.PENDING and target is SessionStatus.COMPLETED:
            raise InvalidState("Session must be confirmed before it can be completed.")
        raise InvalidState(f"Cannot move session from {current.value} to {SessionStatus(target).value}.")


def validate_booking(
    *,
    learner_id,
    teacher_id,
    start_time: datetime,
    end_time: datetime,
    duration: int,
    location_type,
    location_details: Optional[str],
    now: datetime,
    max_session_minutes: int,
) -> tuple[LocationType, Optional[str]]:
    """Check a booking request before any state is touched.

    Returns the parsed location type and the normalised location details.
    """

    if learner_id == teacher_id:
        raise ValidationError("Learners cannot book their own skill.")

    if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
        raise ValidationError("Duration must be a positive number of minutes.")
    if duration > max_session_minutes:
        raise ValidationError(f"Sessions are limited to {max_session_minutes} minutes.")

    if end_time <= start_time:
        raise ValidationError("Session end time must be after its start time.")
    if start_time < now:
        raise ValidationError("Session start time cannot be in the past.")

    window_minutes = (end_time - start_time).total_seconds() / 60
    if duration > window_minutes:
        raise ValidationError(
            f"Duration of {duration} minutes does not fit between start and end time."
        )

    try:
        parsed_location = LocationType(location_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown location type {location_type!r}.") from exc

    details = location_details.strip() if location_details else None
    if parsed_location is LocationType.ON_CAMPUS and not details:
        raise ValidationError("Location details are required for on-campus sessions.")

    return parsed_location, details or None
