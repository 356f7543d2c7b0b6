"""
Async database engine and session helpers.

Routes get a request-scoped session from `get_db`. Work that outlives a
single request (the SSE status poller) takes the session factory from
`get_session_factory` and opens short sessions per write.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from brandforge.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create tables that don't exist yet. Alembic owns migrations in production."""
    # Register models on the metadata before create_all
    from brandforge import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    return async_session
