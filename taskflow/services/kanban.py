"""Read-side board views.

Boards group tasks by stage in the fixed stage order and carry per-stage
counts. Scoping follows the principal's role: wildcard roles see
everything, team leads see their department, everybody else sees what is
assigned to them.
"""

from __future__ import annotations

from typing import Any, Sequence

import structlog

from taskflow.core.access import can_access_project, can_approve, require
from taskflow.core.errors import NotFoundError
from taskflow.core.lifecycle import STAGE_ORDER, KanbanStage, parse_stage
from taskflow.core.roles import Capability, Principal, has_wildcard
from taskflow.models import Project, Task
from taskflow.repository import SqlRepository

logger = structlog.get_logger()


def group_by_stage(tasks: Sequence[Task]) -> tuple[dict[str, list[Task]], dict[str, Any]]:
  board: dict[str, list[Task]] = {s.value: [] for s in STAGE_ORDER}
  for t in tasks:
    # Rows with a stage outside the enumeration are not shown on a board.
    if t.kanban_stage in board:
      board[t.kanban_stage].append(t)
  stats = {
    "total": sum(len(v) for v in board.values()),
    "byStage": {k: len(v) for k, v in board.items()},
  }
  return board, stats


class KanbanService:
  def __init__(self, repo: SqlRepository) -> None:
    self.repo = repo

  async def project_board(self, project_id: str, actor: Principal) -> tuple[Project, dict[str, list[Task]], dict[str, Any]]:
    project = await self.repo.find_project_by_id(project_id)
    if project is None:
      raise NotFoundError("Project not found", reason="project")
    require(can_access_project(actor, project), action="view this board", user=actor, entity_id=project.id)
    tasks = await self.repo.find_tasks(project_id=project.id)
    board, stats = group_by_stage(tasks)
    return project, board, stats

  async def my_board(self, actor: Principal) -> tuple[dict[str, list[Task]], dict[str, Any]]:
    if has_wildcard(actor.role):
      tasks = await self.repo.find_tasks()
    elif actor.can(Capability.VIEW_TEAM_DATA):
      tasks = await self.repo.find_tasks(assignee_id=actor.id, department_id=actor.department_id)
    else:
      tasks = await self.repo.find_tasks(assignee_id=actor.id)
    return group_by_stage(tasks)

  async def tasks_by_stage(self, stage: Any, actor: Principal, *, project_id: str | None = None) -> tuple[KanbanStage, Sequence[Task]]:
    target = parse_stage(stage)
    if has_wildcard(actor.role):
      tasks = await self.repo.find_tasks(stage=target.value, project_id=project_id)
    else:
      tasks = await self.repo.find_tasks(
        stage=target.value,
        project_id=project_id,
        assignee_id=actor.id,
        department_id=actor.department_id,
      )
    return target, tasks

  async def pending_approvals(self, actor: Principal) -> Sequence[Task]:
    require(can_approve(actor), action="view pending approvals", user=actor)
    department_id = None if has_wildcard(actor.role) else actor.department_id
    tasks = await self.repo.find_tasks(stage=KanbanStage.REVIEW.value, department_id=department_id, oldest_first=True)
    logger.info("pending_approvals_listed", user_id=actor.id, count=len(tasks))
    return tasks
