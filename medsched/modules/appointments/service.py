from __future__ import annotations
import logging
from datetime import datetime
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.appointments.repository import AppointmentRepository
from medsched.modules.appointments.schemas import AppointmentCreate, AppointmentUpdate, AppointmentOut
from medsched.modules.appointments.lifecycle import (
    AppointmentStatus, can_delete, can_edit, can_transition, initial_status,
)
from medsched.modules.doctors.repository import DoctorRepository
from medsched.modules.patients.repository import PatientRepository
from medsched.modules.scheduling.collision import describe_conflicts, find_conflicts
from medsched.modules.scheduling.timeutils import time_to_minutes
from medsched.modules.events.publisher import (
    APPT_BOOKED, APPT_DELETED, APPT_STATUS_CHANGED, APPT_UPDATED, publish_event,
)

log = logging.getLogger(__name__)

# Fields an edit may never blank out
_REQUIRED = ("doctor_id", "date", "start", "end", "type")

class AppointmentService:
    """
    Booking and lifecycle operations.

    Methods answer ``(obj, err)``: ``err`` is None on success, otherwise a short
    code the HTTP layer maps to a status. For ``"slot_unavailable"`` the first
    element carries the conflicting appointments.
    """

    def __init__(self, store: RecordStorePort):
        self.store = store
        self.appts = AppointmentRepository(store)
        self.doctors = DoctorRepository(store)
        self.patients = PatientRepository(store)

    async def _conflicts(self, doctor_id: str, day, start: str, end: str, exclude: str | None = None):
        todays = await self.appts.list(doctor_id=doctor_id, date=day)
        return find_conflicts(day, start, end, doctor_id, todays, exclude_appointment_id=exclude)

    async def _index_patient(self, patient_id: str, appt_id: str, add: bool = True):
        patient = await self.patients.get(patient_id)
        if not patient:
            return
        ids = [i for i in patient.appointments if i != appt_id]
        if add:
            ids.append(appt_id)
        await self.store.update("patients", patient_id, {"appointments": ids})

    async def _create(self, payload: AppointmentCreate, via_basket: bool):
        if time_to_minutes(payload.start) >= time_to_minutes(payload.end):
            return None, "invalid_range"
        if not await self.doctors.get(payload.doctor_id):
            return None, "doctor_not_found"
        if not await self.patients.get(payload.patient_id):
            return None, "patient_not_found"

        # check + insert under the doctor's lock so two bookings cannot both pass the check
        async with self.store.locked("doctors", payload.doctor_id):
            conflicts = await self._conflicts(payload.doctor_id, payload.date, payload.start, payload.end)
            if conflicts:
                log.info(f"Booking rejected for doctor {payload.doctor_id} on {payload.date} {payload.start}-{payload.end}")
                return conflicts, "slot_unavailable"
            obj = await self.appts.create(**payload.model_dump(mode="json"), status=initial_status(via_basket))
            await self._index_patient(obj.patient_id, obj.id)

        await publish_event(
            APPT_BOOKED, "appointment", obj.id,
            {"doctor_id": obj.doctor_id, "patient_id": obj.patient_id, "date": obj.date.isoformat(),
             "start": obj.start, "end": obj.end, "status": obj.status.value},
            message=f"Appointment booked on {obj.date} from {obj.start} to {obj.end}.",
        )
        return obj, None

    async def book(self, payload: AppointmentCreate):
        """Direct booking, lands confirmed."""
        return await self._create(payload, via_basket=False)

    async def hold(self, payload: AppointmentCreate):
        """Basket booking, lands in-progress until checkout or expiry."""
        return await self._create(payload, via_basket=True)

    async def update(self, appt_id: str, payload: AppointmentUpdate):
        appt = await self.appts.get(appt_id)
        if not appt:
            return None, "not_found"
        if not can_edit(appt):
            return appt, "not_editable"
        data = payload.model_dump(exclude_unset=True)
        for k in _REQUIRED:
            if k in data and data[k] is None:
                data.pop(k)
        if not data:
            return appt, None

        merged = appt.model_copy(update=data)
        if time_to_minutes(merged.start) >= time_to_minutes(merged.end):
            return None, "invalid_range"
        if merged.doctor_id != appt.doctor_id and not await self.doctors.get(merged.doctor_id):
            return None, "doctor_not_found"

        async with self.store.locked("doctors", merged.doctor_id):
            conflicts = await self._conflicts(merged.doctor_id, merged.date, merged.start, merged.end, exclude=appt.id)
            if conflicts:
                return conflicts, "slot_unavailable"
            obj = await self.appts.update(appt_id, **data)

        await publish_event(
            APPT_UPDATED, "appointment", appt_id, {"changed": sorted(data)},
            message=f"Appointment moved to {obj.date} from {obj.start} to {obj.end}.",
        )
        return obj, None

    async def _transition(self, appt_id: str, target: AppointmentStatus):
        async with self.store.locked("appointments", appt_id):
            appt = await self.appts.get(appt_id)
            if not appt:
                return None, "not_found"
            if not can_transition(appt.status, target):
                return appt, "invalid_transition"
            if not await self.appts.set_status_many({appt_id: appt.status}, target):
                return await self.appts.get(appt_id), "invalid_transition"
            obj = appt.model_copy(update={"status": target})
        await publish_event(
            APPT_STATUS_CHANGED, "appointment", appt_id,
            {"from": appt.status.value, "to": target.value},
            message=f"Appointment status changed from {appt.status.value} to {target.value}.",
        )
        return obj, None

    async def cancel(self, appt_id: str):
        return await self._transition(appt_id, AppointmentStatus.CANCELED)

    async def confirm_hold(self, appt_id: str):
        return await self._transition(appt_id, AppointmentStatus.CONFIRMED)

    async def release_hold(self, appt_id: str):
        """Cancels a held appointment. Already canceled is success; confirmed is left alone."""
        appt = await self.appts.get(appt_id)
        if not appt:
            return None, "not_found"
        if appt.status is AppointmentStatus.CANCELED:
            return appt, None
        if appt.status is not AppointmentStatus.IN_PROGRESS:
            return appt, "invalid_transition"
        return await self._transition(appt_id, AppointmentStatus.CANCELED)

    async def _set_many(self, appt_ids: list[str], target: AppointmentStatus):
        appts = []
        for i in dict.fromkeys(appt_ids):
            appt = await self.appts.get(i)
            if not appt:
                return None, "not_found"
            appts.append(appt)
        pending = [a for a in appts if a.status is not target]
        if any(not can_transition(a.status, target) for a in pending):
            return appts, "invalid_transition"
        if pending and not await self.appts.set_status_many({a.id: a.status for a in pending}, target):
            # one of them was deleted or moved on since it was read
            log.info(f"Batch move to {target.value} aborted: {[a.id for a in pending]}")
            return None, "invalid_transition"
        for a in pending:
            await publish_event(
                APPT_STATUS_CHANGED, "appointment", a.id,
                {"from": a.status.value, "to": target.value},
                message=f"Appointment status changed from {a.status.value} to {target.value}.",
            )
        return [a.model_copy(update={"status": target}) for a in appts], None

    async def cancel_many(self, appt_ids: list[str]):
        """All-or-nothing cancel; already canceled ids are skipped."""
        return await self._set_many(appt_ids, AppointmentStatus.CANCELED)

    async def confirm_many(self, appt_ids: list[str]):
        """All-or-nothing confirm of held appointments."""
        return await self._set_many(appt_ids, AppointmentStatus.CONFIRMED)

    async def confirm_held(self, appt_ids: list[str]) -> tuple[list[str], list[str]]:
        """
        Confirms each held appointment on its own, for basket checkout.

        Returns ``(confirmed, skipped)`` ids. Skipped appointments were canceled,
        deleted or otherwise stopped being held after they went into the basket.
        """
        confirmed, skipped = [], []
        for appt_id in dict.fromkeys(appt_ids):
            obj, err = await self.confirm_hold(appt_id)
            if err is None or (obj is not None and obj.status is AppointmentStatus.CONFIRMED):
                confirmed.append(appt_id)
            else:
                skipped.append(appt_id)
        return confirmed, skipped

    async def delete(self, appt_id: str, now: datetime | None = None):
        appt = await self.appts.get(appt_id)
        if not appt:
            return None, "not_found"
        if not can_delete(appt, now or datetime.now()):
            return appt, "not_deletable"
        await self.appts.delete(appt_id)
        await self._index_patient(appt.patient_id, appt_id, add=False)
        await publish_event(APPT_DELETED, "appointment", appt_id, {"status": appt.status.value},
                            message="Appointment removed.")
        return appt, None

    async def get(self, appt_id: str) -> AppointmentOut | None:
        return await self.appts.get(appt_id)

    async def list(self, doctor_id: str | None = None, patient_id: str | None = None,
                   date=None, status: AppointmentStatus | None = None) -> list[AppointmentOut]:
        return await self.appts.list(doctor_id=doctor_id, patient_id=patient_id, date=date, status=status)

    @staticmethod
    def conflict_message(conflicts) -> str:
        return describe_conflicts(conflicts)
