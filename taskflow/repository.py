"""SQLAlchemy-backed persistence for the task core.

Each ``save_*`` commits the session; a failed commit is rolled back and
re-raised as ``PersistenceError`` so a mutation is stored whole or not at
all. There is no transaction spanning a task save and the project
recompute that follows it.
"""

from __future__ import annotations

from typing import Any, Sequence

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.audit import write_audit
from taskflow.core.errors import PersistenceError
from taskflow.models import Department, Project, Task, TaskLog, Team, User

logger = structlog.get_logger()


class SqlRepository:
  def __init__(self, db: AsyncSession) -> None:
    self.db = db

  async def find_task_by_id(self, task_id: str) -> Task | None:
    res = await self.db.execute(select(Task).where(Task.id == task_id))
    return res.scalar_one_or_none()

  async def find_tasks_by_project(self, project_id: str) -> Sequence[Task]:
    res = await self.db.execute(select(Task).where(Task.project_id == project_id).order_by(Task.created_at.desc()))
    return res.scalars().all()

  async def find_project_by_id(self, project_id: str) -> Project | None:
    res = await self.db.execute(select(Project).where(Project.id == project_id))
    return res.scalar_one_or_none()

  async def find_user_by_id(self, user_id: str) -> User | None:
    res = await self.db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()

  async def find_department_by_id(self, department_id: str) -> Department | None:
    res = await self.db.execute(select(Department).where(Department.id == department_id))
    return res.scalar_one_or_none()

  async def find_team_by_id(self, team_id: str) -> Team | None:
    res = await self.db.execute(select(Team).where(Team.id == team_id))
    return res.scalar_one_or_none()

  async def find_projects(self) -> Sequence[Project]:
    res = await self.db.execute(select(Project).order_by(Project.created_at.desc()))
    return res.scalars().all()

  async def find_tasks(
    self,
    *,
    stage: str | None = None,
    project_id: str | None = None,
    assignee_id: str | None = None,
    department_id: str | None = None,
    oldest_first: bool = False,
  ) -> Sequence[Task]:
    q = select(Task)
    if stage:
      q = q.where(Task.kanban_stage == stage)
    if project_id:
      q = q.where(Task.project_id == project_id)
    # Assignee and department filters combine as "mine or my department's".
    ors = []
    if assignee_id:
      ors.append(Task.assignee_id == assignee_id)
    if department_id:
      ors.append(Task.requesting_department_id == department_id)
      ors.append(Task.executing_department_id == department_id)
    if ors:
      q = q.where(or_(*ors))
    q = q.order_by(Task.updated_at.asc() if oldest_first else Task.created_at.desc())
    res = await self.db.execute(q)
    return res.scalars().all()

  async def list_task_logs(self, task_id: str, *, limit: int = 30) -> Sequence[TaskLog]:
    res = await self.db.execute(
      select(TaskLog).where(TaskLog.task_id == task_id).order_by(TaskLog.created_at.desc()).limit(limit)
    )
    return res.scalars().all()

  def add_task_log(self, entry: TaskLog) -> None:
    self.db.add(entry)

  def add_audit(self, **kwargs: Any) -> None:
    write_audit(self.db, **kwargs)

  async def save_task(self, task: Task) -> Task:
    self.db.add(task)
    await self._commit("task", task.id)
    return task

  async def save_project(self, project: Project) -> Project:
    self.db.add(project)
    await self._commit("project", project.id)
    return project

  async def delete_task(self, task: Task) -> None:
    await self.db.execute(delete(TaskLog).where(TaskLog.task_id == task.id))
    await self.db.delete(task)
    await self._commit("task", task.id)

  async def _commit(self, entity: str, entity_id: str | None) -> None:
    try:
      await self.db.commit()
    except SQLAlchemyError as exc:
      await self.db.rollback()
      logger.error("persistence_failed", entity=entity, entity_id=entity_id, error=str(exc))
      raise PersistenceError(f"Could not save {entity}", reason=type(exc).__name__) from exc
