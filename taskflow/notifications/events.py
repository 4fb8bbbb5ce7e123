from __future__ import annotations

from typing import Any, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskflow.config import settings
from taskflow.core.errors import ValidationError
from taskflow.core.lifecycle import KanbanStage
from taskflow.core.roles import Principal, Role, parse_role
from taskflow.models import InAppNotification, User

logger = structlog.get_logger()


class TaskNotifier(Protocol):
  async def on_task_created(self, task: Any, *, actor: Principal) -> None: ...

  async def on_stage_moved(self, task: Any, old_stage: KanbanStage, new_stage: KanbanStage, *, actor: Principal) -> None: ...

  async def on_approval_requested(self, task: Any, *, actor: Principal) -> None: ...

  async def on_project_progress_changed(self, project: Any, old: int, new: int, *, actor: Principal | None) -> None: ...


def notification_taxonomy_for_event(event_type: str | None, *, level: str | None = None) -> str:
  et = str(event_type or "").strip().lower()
  lvl = str(level or "").strip().lower()
  if lvl == "error":
    return "system"
  if et in {"task.assigned", "task.approval_requested"} or lvl == "warn":
    return "action_required"
  return "informational"


async def notify_inapp(
  db: AsyncSession,
  *,
  user_id: str,
  level: str,
  title: str,
  body: str,
  event_type: str | None = None,
  entity_type: str | None = None,
  entity_id: str | None = None,
) -> bool:
  res = await db.execute(select(User.active).where(User.id == user_id))
  active = res.scalar_one_or_none()
  if not active:
    return False
  db.add(
    InAppNotification(
      user_id=user_id,
      level=level,
      title=title,
      body=body,
      event_type=event_type,
      taxonomy=notification_taxonomy_for_event(event_type, level=level),
      entity_type=entity_type,
      entity_id=entity_id,
    )
  )
  return True


class InAppNotifier:
  """Writes in-app notifications for lifecycle events.

  The acting user is never notified about their own action. Each hook
  runs in its own session, so a failing notification never touches the
  request session that saved the mutation.
  """

  def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, enabled: bool | None = None) -> None:
    self.session_factory = session_factory
    self.enabled = settings.notifications_enabled if enabled is None else enabled

  async def _send(self, db: AsyncSession, recipients: set[str], *, actor: Principal | None, **kwargs: Any) -> int:
    if actor is not None:
      recipients.discard(actor.id)
    recipients.discard("")
    if not recipients:
      return 0
    n = 0
    for uid in sorted(recipients):
      if await notify_inapp(db, user_id=uid, **kwargs):
        n += 1
    await db.commit()
    return n

  async def on_task_created(self, task: Any, *, actor: Principal) -> None:
    if not self.enabled:
      return
    async with self.session_factory() as db:
      n = await self._send(
        db,
        {task.assignee_id},
        actor=actor,
        level="info",
        title="New task assigned",
        body=task.title,
        event_type="task.assigned",
        entity_type="Task",
        entity_id=task.id,
      )
    logger.info("notify_task_created", task_id=task.id, recipients=n)

  async def on_stage_moved(self, task: Any, old_stage: KanbanStage, new_stage: KanbanStage, *, actor: Principal) -> None:
    if not self.enabled:
      return
    async with self.session_factory() as db:
      n = await self._send(
        db,
        {task.assignee_id, task.created_by_id},
        actor=actor,
        level="info",
        title="Task moved",
        body=f"{task.title}: {old_stage.value} -> {new_stage.value}",
        event_type="task.moved",
        entity_type="Task",
        entity_id=task.id,
      )
    logger.info("notify_stage_moved", task_id=task.id, old_stage=old_stage.value, new_stage=new_stage.value, recipients=n)

  async def on_approval_requested(self, task: Any, *, actor: Principal) -> None:
    if not self.enabled:
      return
    depts = [d for d in {task.requesting_department_id, task.executing_department_id} if d]
    async with self.session_factory() as db:
      res = await db.execute(select(User).where(User.active.is_(True), User.department_id.in_(depts)))
      leads: set[str] = set()
      for u in res.scalars().all():
        try:
          if parse_role(u.role) is Role.TEAM_LEAD:
            leads.add(u.id)
        except ValidationError:
          logger.warning("notify_skipped_unknown_role", user_id=u.id, role=u.role)
      n = await self._send(
        db,
        leads,
        actor=actor,
        level="warn",
        title="Task awaiting approval",
        body=task.title,
        event_type="task.approval_requested",
        entity_type="Task",
        entity_id=task.id,
      )
    logger.info("notify_approval_requested", task_id=task.id, recipients=n)

  async def on_project_progress_changed(self, project: Any, old: int, new: int, *, actor: Principal | None) -> None:
    if not self.enabled:
      return
    async with self.session_factory() as db:
      n = await self._send(
        db,
        {project.created_by_id},
        actor=actor,
        level="info",
        title="Project progress updated",
        body=f"{project.name}: {old}% -> {new}%",
        event_type="project.progress",
        entity_type="Project",
        entity_id=project.id,
      )
    logger.info("notify_project_progress", project_id=project.id, old=old, new=new, recipients=n)
