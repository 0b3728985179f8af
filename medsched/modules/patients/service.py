from __future__ import annotations
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.patients.repository import PatientRepository
from medsched.modules.patients.schemas import PatientCreate, PatientUpdate, PatientOut
from medsched.modules.appointments.repository import AppointmentRepository

class PatientService:
    def __init__(self, store: RecordStorePort):
        self.repo = PatientRepository(store)
        self.appts = AppointmentRepository(store)

    async def create(self, payload: PatientCreate) -> PatientOut:
        return await self.repo.create(**payload.model_dump())

    async def get(self, patient_id: str) -> PatientOut | None:
        return await self.repo.get(patient_id)

    async def list(self) -> list[PatientOut]:
        return await self.repo.list()

    async def update(self, patient_id: str, payload: PatientUpdate) -> PatientOut | None:
        data = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not data:
            return await self.repo.get(patient_id)
        return await self.repo.update(patient_id, **data)

    async def delete(self, patient_id: str):
        if not await self.repo.get(patient_id):
            return False, "not_found"
        if await self.appts.list(patient_id=patient_id):
            return False, "in_use"
        return await self.repo.delete(patient_id), None
