"""
Availability Resolver

Answers, for one doctor, one date and one slot start time, four independent
questions:

- is the slot taken by a confirmed or in-progress appointment?
- is the doctor absent that day?
- does a one-time availability for that exact date cover the slot?
- does a recurring weekly rule (weekday + inclusive date range) cover it?

``resolve_slot`` never collapses these into a single verdict; callers pick a
precedence policy. ``compose_status`` is the default one used by the booking
flow and the calendar grid: taken > absent > one-time > recurring.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from medsched.modules.appointments.lifecycle import is_blocking
from medsched.modules.doctors.schemas import Availability
from medsched.modules.scheduling.timeutils import (
    DateLike,
    TimeLike,
    parse_date,
    time_in_range,
    time_to_minutes,
    weekday_name,
)


@dataclass(frozen=True)
class SlotStatus:
    is_taken: bool = False
    is_absent: bool = False
    is_one_time_available: bool = False
    is_recurring_available: bool = False


class SlotState(str, Enum):
    TAKEN = "taken"
    ABSENT = "absent"
    ONE_TIME = "one-time"
    RECURRING = "recurring"
    UNAVAILABLE = "unavailable"


def _doctor_id(doctor) -> str:
    return doctor if isinstance(doctor, str) else doctor.id


def _availability(doctor) -> Availability:
    return getattr(doctor, "availability", None) or Availability()


def _covers(time_ranges, slot_minutes: int) -> bool:
    return any(time_in_range(slot_minutes, tr.start, tr.end) for tr in time_ranges)


def is_slot_taken(doctor, day: DateLike, slot: TimeLike, appointments: Iterable) -> bool:
    doctor_id = _doctor_id(doctor)
    target = parse_date(day)
    minutes = time_to_minutes(slot)
    return any(
        a.doctor_id == doctor_id
        and parse_date(a.date) == target
        and is_blocking(a.status)
        and time_in_range(minutes, a.start, a.end)
        for a in appointments
    )


def is_doctor_absent(doctor, day: DateLike) -> bool:
    target = parse_date(day)
    return any(a.start_date <= target <= a.end_date for a in _availability(doctor).absences)


def is_one_time_available(doctor, day: DateLike, slot: TimeLike) -> bool:
    target = parse_date(day)
    minutes = time_to_minutes(slot)
    return any(
        ot.date == target and _covers(ot.time_ranges, minutes)
        for ot in _availability(doctor).one_time_availabilities
    )


def is_recurring_available(doctor, day: DateLike, slot: TimeLike) -> bool:
    target = parse_date(day)
    weekday = weekday_name(target)
    minutes = time_to_minutes(slot)
    return any(
        rule.day == weekday
        and rule.start_date <= target <= rule.end_date
        and _covers(rule.time_ranges, minutes)
        for rule in _availability(doctor).recurring
    )


def resolve_slot(doctor, day: DateLike, slot_start: TimeLike, appointments: Iterable) -> SlotStatus:
    """
    Reports the four availability facts for ``doctor`` at ``day``/``slot_start``.

    Raises InvalidFormat for a malformed date or time.
    """
    return SlotStatus(
        is_taken=is_slot_taken(doctor, day, slot_start, appointments),
        is_absent=is_doctor_absent(doctor, day),
        is_one_time_available=is_one_time_available(doctor, day, slot_start),
        is_recurring_available=is_recurring_available(doctor, day, slot_start),
    )


def compose_status(status: SlotStatus) -> SlotState:
    # absence wins over an explicit one-time grant on the same date
    if status.is_taken:
        return SlotState.TAKEN
    if status.is_absent:
        return SlotState.ABSENT
    if status.is_one_time_available:
        return SlotState.ONE_TIME
    if status.is_recurring_available:
        return SlotState.RECURRING
    return SlotState.UNAVAILABLE


def is_doctor_available(doctor, day: DateLike, slot: TimeLike, appointments: Iterable) -> bool:
    state = compose_status(resolve_slot(doctor, day, slot, appointments))
    return state in (SlotState.ONE_TIME, SlotState.RECURRING)


def available_doctors(doctors: Iterable, day: DateLike, slot: TimeLike, appointments: Sequence) -> list:
    return [d for d in doctors if is_doctor_available(d, day, slot, appointments)]


def patient_appointments_at(patient_id: str, day: DateLike, slot: TimeLike, appointments: Iterable) -> list:
    target = parse_date(day)
    minutes = time_to_minutes(slot)
    return [
        a for a in appointments
        if a.patient_id == patient_id
        and parse_date(a.date) == target
        and is_blocking(a.status)
        and time_in_range(minutes, a.start, a.end)
    ]


def resolve_day(doctor, day: DateLike, slots: Iterable[TimeLike], appointments: Iterable) -> dict[str, SlotStatus]:
    """Per-slot statuses for one calendar column, keyed by the slot as given."""
    target = parse_date(day)
    doctor_id = _doctor_id(doctor)
    todays = [a for a in appointments if a.doctor_id == doctor_id and parse_date(a.date) == target]
    return {slot: resolve_slot(doctor, target, slot, todays) for slot in slots}


def validate_availability(availability: Availability) -> list[str]:
    """
    Form-level checks for a doctor's availability rules.

    Returns human readable problems; an empty list means the rules are valid.
    Two recurring rules for the same weekday may not have overlapping date
    ranges.
    """
    problems: list[str] = []

    def check_ranges(label: str, time_ranges) -> None:
        for tr in time_ranges:
            if time_to_minutes(tr.start) >= time_to_minutes(tr.end):
                problems.append(f"{label}: start time {tr.start} must be earlier than end time {tr.end}.")

    for rule in availability.recurring:
        label = f"Recurring availability on \"{rule.day}\""
        if rule.start_date > rule.end_date:
            problems.append(f"{label}: start date {rule.start_date} must not be after end date {rule.end_date}.")
        if not rule.time_ranges:
            problems.append(f"{label}: at least one time range is required.")
        check_ranges(label, rule.time_ranges)

    for ot in availability.one_time_availabilities:
        label = f"One-time availability on {ot.date}"
        if not ot.time_ranges:
            problems.append(f"{label}: at least one time range is required.")
        check_ranges(label, ot.time_ranges)

    for absence in availability.absences:
        if absence.start_date > absence.end_date:
            problems.append(
                f"Absence from {absence.start_date} to {absence.end_date}: start date must not be after end date."
            )

    rules = availability.recurring
    for i, a in enumerate(rules):
        for b in rules[i + 1:]:
            if a.day == b.day and a.start_date <= b.end_date and b.start_date <= a.end_date:
                problems.append(
                    f"Recurring availability on \"{a.day}\" from {a.start_date} to {a.end_date} "
                    f"overlaps with \"{b.day}\" from {b.start_date} to {b.end_date}."
                )
    return problems
