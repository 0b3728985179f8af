from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from .config import settings
from .base import Base

def make_engine(dsn: str | None = None, **kwargs) -> AsyncEngine:
    dsn = dsn or settings.DATABASE_DSN
    if dsn.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(dsn, **kwargs)

engine = make_engine()
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

def _import_models():
    # tables must be registered on Base.metadata before create_all
    from medsched.modules.doctors import models as _doctors  # noqa: F401
    from medsched.modules.patients import models as _patients  # noqa: F401
    from medsched.modules.specialties import models as _specialties  # noqa: F401
    from medsched.modules.appointments import models as _appointments  # noqa: F401

async def init_models(bind: AsyncEngine | None = None):
    ## In dev-only "create_all" mode, create tables; otherwise, migrations own the schema.
    if settings.DB_MANAGE.lower() != "create_all":
        return
    _import_models()
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
