from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

def _import_models():
    # registers every table on Base.metadata
    from clinic_messaging.modules.accounts import models as _accounts  # noqa: F401
    from clinic_messaging.modules.patients import models as _patients  # noqa: F401
    from clinic_messaging.modules.conversations import models as _conversations  # noqa: F401

async def init_models():
    ## In dev-only "create_all" mode build the schema here; otherwise, migrations own the schema.
    if settings.DB_MANAGE == "create_all":
        _import_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
