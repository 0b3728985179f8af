from __future__ import annotations
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.specialties.repository import SpecialtyRepository
from medsched.modules.specialties.schemas import SpecialtyCreate, SpecialtyUpdate, SpecialtyOut
from medsched.modules.doctors.repository import DoctorRepository

class SpecialtyService:
    def __init__(self, store: RecordStorePort):
        self.repo = SpecialtyRepository(store)
        self.doctors = DoctorRepository(store)

    async def create(self, payload: SpecialtyCreate):
        if await self.repo.find_by_name(payload.name):
            return None, "duplicate_name"
        return await self.repo.create(**payload.model_dump()), None

    async def get(self, specialty_id: str) -> SpecialtyOut | None:
        return await self.repo.get(specialty_id)

    async def list(self) -> list[SpecialtyOut]:
        return await self.repo.list()

    async def update(self, specialty_id: str, payload: SpecialtyUpdate):
        data = payload.model_dump(exclude_unset=True, exclude_none=True)
        current = await self.repo.get(specialty_id)
        if not current:
            return None, "not_found"
        if "name" in data and data["name"] != current.name and await self.repo.find_by_name(data["name"]):
            return None, "duplicate_name"
        if not data:
            return current, None
        return await self.repo.update(specialty_id, **data), None

    async def delete(self, specialty_id: str):
        current = await self.repo.get(specialty_id)
        if not current:
            return False, "not_found"
        # doctors reference specialties by name
        if await self.doctors.list(current.name):
            return False, "in_use"
        return await self.repo.delete(specialty_id), None
