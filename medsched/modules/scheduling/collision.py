"""
Collision Detection

Guards the central scheduling invariant: two non-canceled appointments of
the same doctor on the same date never have overlapping ``[start, end)``
intervals.

The detector works on whatever snapshot the caller passes in. It does not
check ``start < end``; the booking flow validates that before calling.
"""

from typing import Iterable, Optional

from medsched.modules.appointments.lifecycle import is_blocking
from medsched.modules.scheduling.timeutils import DateLike, TimeLike, intervals_overlap, parse_date, time_to_minutes


def find_conflicts(
    day: DateLike,
    start: TimeLike,
    end: TimeLike,
    doctor_id: str,
    appointments: Iterable,
    exclude_appointment_id: Optional[str] = None,
) -> list:
    """
    Returns the appointments that block ``[start, end)`` for ``doctor_id``.

    An appointment blocks when it is not the excluded one (edits), belongs to
    the same doctor and date, is not canceled and overlaps the candidate.
    Raises InvalidFormat for malformed dates or times.
    """
    target = parse_date(day)
    new_start = time_to_minutes(start)
    new_end = time_to_minutes(end)

    conflicts = []
    for appt in appointments:
        if exclude_appointment_id is not None and appt.id == exclude_appointment_id:
            continue
        if appt.doctor_id != doctor_id or parse_date(appt.date) != target:
            continue
        if not is_blocking(appt.status):
            continue
        if intervals_overlap(new_start, new_end, appt.start, appt.end):
            conflicts.append(appt)
    return conflicts


def is_bookable(
    day: DateLike,
    start: TimeLike,
    end: TimeLike,
    doctor_id: str,
    appointments: Iterable,
    exclude_appointment_id: Optional[str] = None,
) -> bool:
    return not find_conflicts(day, start, end, doctor_id, appointments, exclude_appointment_id)


def describe_conflicts(conflicts: Iterable) -> str:
    spans = ", ".join(f"{c.start}-{c.end}" for c in conflicts)
    return f"The selected time slot overlaps with an existing appointment for the chosen doctor ({spans})."
