from __future__ import annotations
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.patients.schemas import PatientOut

class PatientRepository:
    collection = "patients"

    def __init__(self, store: RecordStorePort):
        self.store = store

    async def create(self, **data) -> PatientOut:
        data.setdefault("appointments", [])
        return PatientOut(**await self.store.create(self.collection, data))

    async def get(self, patient_id: str) -> PatientOut | None:
        doc = await self.store.get(self.collection, patient_id)
        return PatientOut(**doc) if doc else None

    async def list(self) -> list[PatientOut]:
        return [PatientOut(**d) for d in await self.store.list(self.collection)]

    async def update(self, patient_id: str, **data) -> PatientOut | None:
        doc = await self.store.update(self.collection, patient_id, data)
        return PatientOut(**doc) if doc else None

    async def delete(self, patient_id: str) -> bool:
        return await self.store.delete(self.collection, patient_id)
