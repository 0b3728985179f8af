from __future__ import annotations
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.appointments.lifecycle import AppointmentStatus
from medsched.modules.appointments.schemas import AppointmentOut

class AppointmentRepository:
    collection = "appointments"

    def __init__(self, store: RecordStorePort):
        self.store = store

    async def create(self, **data) -> AppointmentOut:
        return AppointmentOut(**await self.store.create(self.collection, data))

    async def get(self, appt_id: str) -> AppointmentOut | None:
        doc = await self.store.get(self.collection, appt_id)
        return AppointmentOut(**doc) if doc else None

    async def list(self, **where) -> list[AppointmentOut]:
        where = {k: v for k, v in where.items() if v is not None}
        return [AppointmentOut(**d) for d in await self.store.list(self.collection, **where)]

    async def update(self, appt_id: str, **data) -> AppointmentOut | None:
        doc = await self.store.update(self.collection, appt_id, data)
        return AppointmentOut(**doc) if doc else None

    async def set_status_many(self, expected: dict[str, AppointmentStatus], status: AppointmentStatus) -> bool:
        """Moves every id to ``status``, provided each still has its ``expected`` status."""
        return await self.store.update_many(
            {f"{self.collection}/{i}/status": status for i in expected},
            expect={f"{self.collection}/{i}/status": s for i, s in expected.items()},
        )

    async def delete(self, appt_id: str) -> bool:
        return await self.store.delete(self.collection, appt_id)
