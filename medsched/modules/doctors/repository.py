from __future__ import annotations
from typing import Any
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.doctors.schemas import DoctorOut

class DoctorRepository:
    collection = "doctors"

    def __init__(self, store: RecordStorePort):
        self.store = store

    async def create(self, **data) -> DoctorOut:
        return DoctorOut(**await self.store.create(self.collection, data))

    async def get(self, doctor_id: str) -> DoctorOut | None:
        doc = await self.store.get(self.collection, doctor_id)
        return DoctorOut(**doc) if doc else None

    async def list(self, specialty: str | None = None) -> list[DoctorOut]:
        where = {"specialty": specialty} if specialty else {}
        return [DoctorOut(**d) for d in await self.store.list(self.collection, **where)]

    async def update(self, doctor_id: str, **data) -> DoctorOut | None:
        doc = await self.store.update(self.collection, doctor_id, data)
        return DoctorOut(**doc) if doc else None

    async def set_availability(self, doctor_id: str, section: str, value: Any) -> DoctorOut | None:
        # only the one sub-list is rewritten, sibling sections stay untouched
        doc = await self.store.update(self.collection, doctor_id, {f"availability/{section}": value})
        return DoctorOut(**doc) if doc else None

    async def delete(self, doctor_id: str) -> bool:
        return await self.store.delete(self.collection, doctor_id)
