"""
Appointment lifecycle.

    (book)  ─────────────► confirmed ──► canceled
    (basket) ─► in-progress ─┘   └──────► canceled

``canceled`` is terminal and never blocks a slot. Records are only removed by
an explicit delete, which is allowed for canceled or already finished
appointments.
"""

from datetime import datetime, time
from enum import Enum

from medsched.core.errors import InvalidTransition
from medsched.modules.scheduling.timeutils import parse_date, time_to_minutes


class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    CANCELED = "canceled"


VALID_NEXT: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.CANCELED}),
    AppointmentStatus.CANCELED: frozenset(),
}

BLOCKING = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS})


def as_status(value: AppointmentStatus | str) -> AppointmentStatus:
    return value if isinstance(value, AppointmentStatus) else AppointmentStatus(value)


def initial_status(via_basket: bool) -> AppointmentStatus:
    return AppointmentStatus.IN_PROGRESS if via_basket else AppointmentStatus.CONFIRMED


def is_blocking(status: AppointmentStatus | str) -> bool:
    return as_status(status) in BLOCKING


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    return as_status(target) in VALID_NEXT[as_status(current)]


def ensure_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> AppointmentStatus:
    if not can_transition(current, target):
        raise InvalidTransition(as_status(current).value, as_status(target).value)
    return as_status(target)


def can_edit(appointment) -> bool:
    return is_blocking(appointment.status)


def has_ended(appointment, now: datetime) -> bool:
    day = parse_date(appointment.date)
    end = time_to_minutes(appointment.end)
    ends_at = datetime.combine(day, time(end // 60, end % 60))
    if now.tzinfo is not None:
        now = now.replace(tzinfo=None)
    return ends_at <= now


def can_delete(appointment, now: datetime) -> bool:
    """Hard delete is reserved for canceled or finished appointments."""
    return as_status(appointment.status) is AppointmentStatus.CANCELED or has_ended(appointment, now)
