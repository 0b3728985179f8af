from __future__ import annotations
import uuid
import logging
from contextlib import asynccontextmanager
from typing import Any
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from medsched.core.errors import InvalidIdentifier
from medsched.platform.ports.record_store import (
    RecordStorePort, check_collection, group_paths, matches, split_path, set_path, to_plain,
)
from medsched.modules.doctors.models import Doctor
from medsched.modules.patients.models import Patient
from medsched.modules.specialties.models import Specialty
from medsched.modules.appointments.models import Appointment

log = logging.getLogger("store.sql")

MODELS = {
    "doctors": Doctor,
    "patients": Patient,
    "specialties": Specialty,
    "appointments": Appointment,
}
_SKIP = {"created_at", "updated_at"}

class SqlRecordStore(RecordStorePort):
    """Relational backend. Each call is its own transaction unless it runs inside ``locked``."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._depth = 0

    def _model(self, collection: str):
        return MODELS[check_collection(collection)]

    @staticmethod
    def _check_id(record_id: str) -> str:
        try:
            uuid.UUID(str(record_id))
        except ValueError:
            raise InvalidIdentifier(f"invalid id format: {record_id!r}") from None
        return str(record_id)

    @staticmethod
    def _to_dict(obj) -> dict:
        return {
            c.key: getattr(obj, c.key)
            for c in obj.__mapper__.column_attrs
            if c.key not in _SKIP
        }

    async def _commit(self):
        if self._depth:
            await self.session.flush()
        else:
            await self.session.commit()

    async def _load(self, collection: str, record_id: str, for_update: bool = False):
        # always re-read: the identity map may hold a row another transaction has since changed
        return await self.session.get(
            self._model(collection), self._check_id(record_id),
            populate_existing=True, with_for_update=for_update or None,
        )

    async def _abort(self):
        if not self._depth:
            await self.session.rollback()

    def _assign(self, obj, patch: dict):
        for path, value in patch.items():
            parts = split_path(path)
            top = parts[0]
            if top == "id" or top in _SKIP or top not in obj.__mapper__.column_attrs:
                raise ValueError(f"cannot update field {top!r}")
            if len(parts) == 1:
                setattr(obj, top, to_plain(value))
            else:
                # JSON column: write a fresh copy so the change is detected
                setattr(obj, top, set_path(getattr(obj, top) or {}, parts[1:], to_plain(value)))

    async def list(self, collection: str, **where: Any) -> list[dict]:
        model = self._model(collection)
        q = select(model)
        for k, v in where.items():
            q = q.where(getattr(model, k) == to_plain(v))
        res = await self.session.execute(q.order_by(model.created_at.asc(), model.id.asc()))
        return [self._to_dict(o) for o in res.scalars().all()]

    async def get(self, collection: str, record_id: str) -> dict | None:
        obj = await self._load(collection, record_id)
        return self._to_dict(obj) if obj else None

    async def create(self, collection: str, data: dict) -> dict:
        model = self._model(collection)
        obj = model(**{k: to_plain(v) for k, v in data.items()})
        self.session.add(obj)
        await self.session.flush()
        out = self._to_dict(obj)
        await self._commit()
        return out

    async def update(self, collection: str, record_id: str, patch: dict) -> dict | None:
        obj = await self._load(collection, record_id)
        if not obj:
            return None
        self._assign(obj, patch)
        await self.session.flush()
        out = self._to_dict(obj)
        await self._commit()
        return out

    async def update_many(self, patches: dict[str, Any], expect: dict[str, Any] | None = None) -> bool:
        grouped = group_paths(patches)
        expected = group_paths(expect or {})
        rows = {}
        for collection, record_id in dict.fromkeys([*grouped, *expected]):
            obj = await self._load(collection, record_id, for_update=True)
            if not obj:
                log.warning(f"update_many aborted: {collection}/{record_id} not found")
                await self._abort()
                return False
            if not matches(self._to_dict(obj), expected.get((collection, record_id), {})):
                log.info(f"update_many aborted: {collection}/{record_id} changed")
                await self._abort()
                return False
            rows[(collection, record_id)] = obj
        for target, patch in grouped.items():
            self._assign(rows[target], patch)
        await self._commit()
        return True

    async def delete(self, collection: str, record_id: str) -> bool:
        obj = await self._load(collection, record_id)
        if not obj:
            return False
        await self.session.delete(obj)
        await self._commit()
        return True

    @asynccontextmanager
    async def locked(self, collection: str, record_id: str):
        # SELECT ... FOR UPDATE on the owning row serializes check-then-write sequences
        model = self._model(collection)
        self._check_id(record_id)
        self._depth += 1
        try:
            await self.session.execute(select(model.id).where(model.id == record_id).with_for_update())
            yield self
        except BaseException:
            self._depth -= 1
            if not self._depth:
                await self.session.rollback()
            raise
        else:
            self._depth -= 1
            if not self._depth:
                await self.session.commit()
