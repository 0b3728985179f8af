from __future__ import annotations
import logging
from datetime import date
from medsched.core.config import settings
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.doctors.repository import DoctorRepository
from medsched.modules.doctors.schemas import (
    Availability, DoctorCreate, DoctorOut, DoctorUpdate, DayOut, SlotOut,
)
from medsched.modules.appointments.repository import AppointmentRepository
from medsched.modules.scheduling.availability import (
    available_doctors, compose_status, patient_appointments_at, resolve_day, validate_availability,
)
from medsched.modules.scheduling.timeutils import DateLike, TimeLike, generate_time_slots, normalize_time, parse_date, week_days

log = logging.getLogger(__name__)

AVAILABILITY_SECTIONS = ("recurring", "one_time_availabilities", "absences")

class DoctorService:
    def __init__(self, store: RecordStorePort):
        self.repo = DoctorRepository(store)
        self.appts = AppointmentRepository(store)

    async def create(self, payload: DoctorCreate):
        problems = validate_availability(payload.availability)
        if problems:
            return problems, "invalid_availability"
        obj = await self.repo.create(**payload.model_dump(mode="json"))
        log.info(f"Doctor {obj.id} created ({obj.specialty})")
        return obj, None

    async def get(self, doctor_id: str) -> DoctorOut | None:
        return await self.repo.get(doctor_id)

    async def list(self, specialty: str | None = None) -> list[DoctorOut]:
        return await self.repo.list(specialty)

    async def update(self, doctor_id: str, payload: DoctorUpdate) -> DoctorOut | None:
        data = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not data:
            return await self.repo.get(doctor_id)
        return await self.repo.update(doctor_id, **data)

    async def set_availability(self, doctor_id: str, section: str, items: list):
        """Replaces one availability sub-list; the merged result must still validate."""
        if section not in AVAILABILITY_SECTIONS:
            raise ValueError(f"unknown availability section {section!r}")
        doctor = await self.repo.get(doctor_id)
        if not doctor:
            return None, "not_found"
        merged = doctor.availability.model_copy(update={section: items})
        problems = validate_availability(merged)
        if problems:
            return problems, "invalid_availability"
        value = [i.model_dump(mode="json") for i in items]
        return await self.repo.set_availability(doctor_id, section, value), None

    async def delete(self, doctor_id: str):
        doctor = await self.repo.get(doctor_id)
        if not doctor:
            return False, "not_found"
        if await self.appts.list(doctor_id=doctor_id):
            return False, "in_use"
        return await self.repo.delete(doctor_id), None

    async def week(self, doctor_id: str, day: DateLike, patient_id: str | None = None) -> list[DayOut] | None:
        """
        Calendar grid for the Monday-start week containing ``day``.

        With ``patient_id`` the slots that patient already holds (with any
        doctor) are flagged ``is_own``.
        """
        doctor = await self.repo.get(doctor_id)
        if not doctor:
            return None
        slots = generate_time_slots(settings.CALENDAR_START_HOUR, settings.CALENDAR_HOURS, settings.SLOT_MINUTES)
        appointments = await self.appts.list(doctor_id=doctor_id)
        own = await self.appts.list(patient_id=patient_id) if patient_id else []
        out = []
        for d in week_days(day):
            statuses = resolve_day(doctor, d, slots, appointments)
            out.append(DayOut(date=d, slots=[
                SlotOut(
                    time=t, state=compose_status(s).value,
                    is_own=bool(own) and bool(patient_appointments_at(patient_id, d, t, own)),
                    **vars(s),
                )
                for t, s in statuses.items()
            ]))
        return out

    async def available(self, day: DateLike, slot: TimeLike, specialty: str | None = None) -> list[DoctorOut]:
        target: date = parse_date(day)
        doctors = await self.repo.list(specialty)
        appointments = await self.appts.list(date=target)
        return available_doctors(doctors, target, normalize_time(slot), appointments)
