"""Relational engine and session factory.

The relational store only holds the append-only activity log; every
billing document lives in the document store (see ``firmbook.documents``).

  - Base       → declarative base for relational tables
  - get_db()   → FastAPI dependency yielding a session that commits on success
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from firmbook.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=10,
    max_overflow=5,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Relational models (activity log)."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session; commit when the request succeeds, roll back otherwise."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create any missing relational tables (idempotent)."""
    import firmbook.models  # noqa: F401  register mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
