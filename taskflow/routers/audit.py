from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.access import Decision, require
from taskflow.core.roles import Principal, has_wildcard
from taskflow.deps import get_db, get_principal
from taskflow.models import AuditEvent
from taskflow.schemas import AuditOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditOut])
async def list_audit(
  projectId: str | None = None,
  taskId: str | None = None,
  limit: int = 200,
  actor: Principal = Depends(get_principal),
  db: AsyncSession = Depends(get_db),
) -> list[AuditOut]:
  allowed = has_wildcard(actor.role)
  require(Decision(allowed, None if allowed else "not administrator"), action="read the audit log", user=actor)
  q = select(AuditEvent).order_by(AuditEvent.created_at.desc()).limit(max(1, min(int(limit), 500)))
  if projectId:
    q = q.where(AuditEvent.project_id == projectId)
  if taskId:
    q = q.where(AuditEvent.task_id == taskId)
  res = await db.execute(q)
  out = []
  for ev in res.scalars().all():
    out.append(
      AuditOut(
        id=ev.id,
        projectId=ev.project_id,
        taskId=ev.task_id,
        actorId=ev.actor_id,
        eventType=ev.event_type,
        entityType=ev.entity_type,
        entityId=ev.entity_id,
        payload=ev.payload or {},
        createdAt=ev.created_at,
      )
    )
  return out
