from __future__ import annotations
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.specialties.schemas import SpecialtyOut

class SpecialtyRepository:
    collection = "specialties"

    def __init__(self, store: RecordStorePort):
        self.store = store

    async def create(self, **data) -> SpecialtyOut:
        return SpecialtyOut(**await self.store.create(self.collection, data))

    async def get(self, specialty_id: str) -> SpecialtyOut | None:
        doc = await self.store.get(self.collection, specialty_id)
        return SpecialtyOut(**doc) if doc else None

    async def find_by_name(self, name: str) -> SpecialtyOut | None:
        docs = await self.store.list(self.collection, name=name)
        return SpecialtyOut(**docs[0]) if docs else None

    async def list(self) -> list[SpecialtyOut]:
        return [SpecialtyOut(**d) for d in await self.store.list(self.collection)]

    async def update(self, specialty_id: str, **data) -> SpecialtyOut | None:
        doc = await self.store.update(self.collection, specialty_id, data)
        return SpecialtyOut(**doc) if doc else None

    async def delete(self, specialty_id: str) -> bool:
        return await self.store.delete(self.collection, specialty_id)
