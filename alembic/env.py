from __future__ import annotations

import asyncio

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from taskflow.config import settings
from taskflow.models import Base

target_metadata = Base.metadata


def _run(connection) -> None:
  context.configure(connection=connection, target_metadata=target_metadata)
  with context.begin_transaction():
    context.run_migrations()


async def _run_async() -> None:
  engine = create_async_engine(settings.database_url)
  async with engine.connect() as conn:
    await conn.run_sync(_run)
  await engine.dispose()


if context.is_offline_mode():
  context.configure(url=settings.database_url, target_metadata=target_metadata, literal_binds=True)
  with context.begin_transaction():
    context.run_migrations()
else:
  asyncio.run(_run_async())
