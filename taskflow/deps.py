from __future__ import annotations

from typing import AsyncIterator

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.errors import ValidationError
from taskflow.core.roles import Principal
from taskflow.db import SessionLocal
from taskflow.models import ApiToken, User
from taskflow.notifications.events import InAppNotifier
from taskflow.repository import SqlRepository
from taskflow.security import api_token_hash
from taskflow.services.kanban import KanbanService
from taskflow.services.projects import ProjectService
from taskflow.services.tasks import TaskService

logger = structlog.get_logger()


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  auth = request.headers.get("authorization")
  if not auth or not auth.lower().startswith("bearer "):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  token = auth.split(" ", 1)[1].strip()
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
  h = api_token_hash(token)
  tres = await db.execute(select(ApiToken).where(ApiToken.token_hash == h, ApiToken.revoked_at.is_(None)))
  t = tres.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
  ures = await db.execute(select(User).where(User.id == t.user_id))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  if not u.active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
  structlog.contextvars.bind_contextvars(user_id=u.id)
  return u


async def get_principal(user: User = Depends(get_current_user)) -> Principal:
  # Stored role strings are converted exactly once, here.
  try:
    return Principal.from_user(user)
  except ValidationError:
    logger.warning("unknown_role", user_id=user.id, role=user.role)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role") from None


def get_repo(db: AsyncSession = Depends(get_db)) -> SqlRepository:
  return SqlRepository(db)


def get_notifier() -> InAppNotifier:
  return InAppNotifier(SessionLocal)


def get_task_service(repo: SqlRepository = Depends(get_repo), notifier: InAppNotifier = Depends(get_notifier)) -> TaskService:
  return TaskService(repo, notifier)


def get_project_service(repo: SqlRepository = Depends(get_repo), notifier: InAppNotifier = Depends(get_notifier)) -> ProjectService:
  return ProjectService(repo, notifier)


def get_kanban_service(repo: SqlRepository = Depends(get_repo)) -> KanbanService:
  return KanbanService(repo)
