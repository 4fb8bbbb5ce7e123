from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskflow.config import settings
from taskflow.models import Base

engine = create_async_engine(settings.database_url, echo=settings.database_echo, pool_pre_ping=True)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def create_schema() -> None:
  # Used by tests and local sqlite runs; deployed databases go through alembic.
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)


async def drop_schema() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
