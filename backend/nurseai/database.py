from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from nurseai.config import settings


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Repositories and search adapters open one short-lived session per call from
# this factory; sessions are never shared between concurrent tasks.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""
    pass


async def init_db():
    """Create the pgvector extension and any missing tables."""
    # Import models so every table is registered on Base.metadata
    import nurseai.models  # noqa: F401

    async with engine.begin() as conn:
        # pgvector must exist before any VECTOR column is created
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    """Close pooled connections on shutdown."""
    await engine.dispose()
