from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.errors import NotFoundError
from taskflow.deps import get_current_user, get_db
from taskflow.models import InAppNotification, User
from taskflow.notifications.events import notification_taxonomy_for_event
from taskflow.schemas import InAppNotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_out(n: InAppNotification) -> InAppNotificationOut:
  return InAppNotificationOut(
    id=n.id,
    level=n.level,
    title=n.title,
    body=n.body,
    eventType=n.event_type,
    taxonomy=(n.taxonomy or notification_taxonomy_for_event(n.event_type, level=n.level)),
    entityType=n.entity_type,
    entityId=n.entity_id,
    readAt=n.read_at,
    createdAt=n.created_at,
  )


@router.get("", response_model=list[InAppNotificationOut])
async def list_notifications(
  unreadOnly: bool = False,
  limit: int = 50,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[InAppNotificationOut]:
  limit = max(1, min(int(limit), 200))
  stmt = select(InAppNotification).where(InAppNotification.user_id == actor.id)
  if unreadOnly:
    stmt = stmt.where(InAppNotification.read_at.is_(None))
  stmt = stmt.order_by(InAppNotification.created_at.desc()).limit(limit)
  res = await db.execute(stmt)
  return [_notification_out(n) for n in res.scalars().all()]


@router.post("/{notification_id}/read", response_model=InAppNotificationOut)
async def mark_read(notification_id: str, actor: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> InAppNotificationOut:
  res = await db.execute(
    select(InAppNotification).where(InAppNotification.id == notification_id, InAppNotification.user_id == actor.id)
  )
  n = res.scalar_one_or_none()
  if not n:
    raise NotFoundError("Notification not found", reason="notification")
  if n.read_at is None:
    n.read_at = datetime.now(timezone.utc)
    await db.commit()
  return _notification_out(n)
