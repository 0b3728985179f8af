from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import async_sessionmaker
from medsched.core.config import settings
from medsched.core.db import SessionLocal
from medsched.core.redis import redis_manager
from medsched.platform.ports.event_bus import EventBusPort
from medsched.platform.adapters.bus_noop import NoopEventBus
from medsched.platform.adapters.bus_redis import RedisEventBus
from medsched.platform.ports.record_store import RecordStorePort
from medsched.platform.adapters.store_sql import SqlRecordStore
from medsched.platform.adapters.store_redis import RedisRecordStore

class ProviderRegistry:
    _event_bus: EventBusPort | None = None
    _sessions: async_sessionmaker | None = None

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def use_event_bus(cls, bus: EventBusPort | None):
        cls._event_bus = bus

    @classmethod
    def use_sessions(cls, factory: async_sessionmaker | None):
        """Point the relational backend at another engine (tests, embedding apps)."""
        cls._sessions = factory

    @classmethod
    @asynccontextmanager
    async def open_store(cls) -> AsyncIterator[RecordStorePort]:
        """A store for one unit of work; request handlers and basket timers each open their own."""
        if settings.PERSISTENCE_PROVIDER == "redis":
            yield RedisRecordStore(
                redis_manager.client,
                prefix=settings.REDIS_PREFIX,
                lock_timeout=settings.STORE_LOCK_TIMEOUT_SECONDS,
                lock_ttl=settings.STORE_LOCK_TTL_SECONDS,
            )
            return
        async with (cls._sessions or SessionLocal)() as session:
            yield SqlRecordStore(session)

    @classmethod
    async def record_store(cls) -> AsyncIterator[RecordStorePort]:
        # FastAPI dependency
        async with cls.open_store() as store:
            yield store

registry = ProviderRegistry()
