# backend/tmsdb/apps/training/lifecycle.py

"""
Enrollment status machine and certificate-expiry arithmetic.

TRANSITIONS maps each state to the states it may move to; a state with no
outgoing edges is terminal. Staying in the same state is not a transition.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Dict, FrozenSet, Optional, TypeVar

from ...errors import InvalidInput
from .models import EnrollmentStatus

TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.ENROLLED: frozenset(
        {EnrollmentStatus.ATTENDED, EnrollmentStatus.ABSENT, EnrollmentStatus.COMPLETED}
    ),
    EnrollmentStatus.ATTENDED: frozenset({EnrollmentStatus.COMPLETED}),
    EnrollmentStatus.ABSENT: frozenset(),
    EnrollmentStatus.COMPLETED: frozenset(),
}


def can_transition(from_state: EnrollmentStatus, to_state: EnrollmentStatus) -> bool:
    if from_state == to_state:
        return True
    return to_state in TRANSITIONS.get(from_state, frozenset())


def ensure_transition(from_state: EnrollmentStatus, to_state: EnrollmentStatus) -> None:
    if not can_transition(from_state, to_state):
        raise InvalidInput.for_field(
            "status",
            f"Cannot transition from {from_state.value} to {to_state.value}",
        )


_D = TypeVar("_D", date, datetime)


def add_months(base: _D, months: int) -> _D:
    """
    Add calendar months, clamping the day to the end of the target month
    (31 Jan + 1 month = 28/29 Feb). Works for dates and datetimes.
    """
    if months <= 0:
        return base
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def expiry_date(completion_date: Optional[datetime], validity_months: Optional[int]) -> Optional[date]:
    """Day a completion stops counting, or None if it never expires."""
    if completion_date is None or not validity_months:
        return None
    return add_months(_as_date(completion_date), validity_months)


def _as_date(value: datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value
