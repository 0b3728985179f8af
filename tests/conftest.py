"""Shared fixtures for medsched tests."""

import os

os.environ.setdefault("ENV", "local")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite://")
os.environ.setdefault("PERSISTENCE_PROVIDER", "sql")
os.environ.setdefault("EVENT_BUS_PROVIDER", "noop")

import fakeredis
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from medsched.core.db import init_models, make_engine
from medsched.modules.appointments.schemas import AppointmentOut
from medsched.modules.doctors.schemas import DoctorOut
from medsched.platform.adapters.store_redis import RedisRecordStore
from medsched.platform.adapters.store_sql import SqlRecordStore
from medsched.platform.provider_registry import registry


class RecordingBus:
    """Event bus double that keeps every published value."""

    def __init__(self):
        self.events: list[dict] = []

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        self.events.append(value)

    def types(self) -> list[str]:
        return [e["event_type"] for e in self.events]


@pytest.fixture(autouse=True)
def bus():
    recording = RecordingBus()
    registry.use_event_bus(recording)
    yield recording
    registry.use_event_bus(None)


@pytest.fixture
async def engine():
    eng = make_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def sessions(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    registry.use_sessions(factory)
    yield factory
    registry.use_sessions(None)


@pytest.fixture
async def sql_store(sessions):
    async with sessions() as session:
        yield SqlRecordStore(session)


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_store(redis_client):
    return RedisRecordStore(redis_client, prefix="test", lock_timeout=1.0)


@pytest.fixture(params=["sql", "redis"])
async def store(request, sessions):
    """Runs a test once per persistence backend."""
    if request.param == "sql":
        async with sessions() as session:
            yield SqlRecordStore(session)
    else:
        client = fakeredis.FakeAsyncRedis(decode_responses=True)
        yield RedisRecordStore(client, prefix="test", lock_timeout=1.0)
        await client.aclose()


@pytest.fixture
def monday_doctor() -> DoctorOut:
    """Recurring Mondays 09:00-12:00 through January 2024."""
    return DoctorOut(
        id="doc-1",
        name="Dr. House",
        specialty="Cardiology",
        availability={
            "recurring": [{
                "day": "monday",
                "start_date": "2024-01-01",
                "end_date": "2024-01-31",
                "time_ranges": [{"start": "09:00", "end": "12:00"}],
            }],
        },
    )


@pytest.fixture
def make_appointment():
    """Factory for appointment snapshots."""

    def build(appt_id="a1", doctor_id="doc-1", date="2024-01-08", start="10:30", end="11:00",
              status="confirmed", patient_id="pat-1") -> AppointmentOut:
        return AppointmentOut(id=appt_id, doctor_id=doctor_id, patient_id=patient_id, date=date,
                              start=start, end=end, type="checkup", status=status)

    return build
