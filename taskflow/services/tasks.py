"""Task operations exposed to the request layer.

Every mutation authorizes through ``taskflow.core.access`` before the
state machine runs, then applies the transition's effects in order:
persist the task, recompute the project when Done membership changed,
notify. Notifier failures are logged and do not change the result.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import structlog

from taskflow.core.access import (
  can_access_project,
  can_access_task,
  can_approve,
  can_modify_project,
  can_modify_task,
  can_update_task_status,
  require,
)
from taskflow.core.errors import BusinessRuleError, NotFoundError, ValidationError
from taskflow.core.lifecycle import (
  KanbanStage,
  NotifyApprovalRequested,
  NotifyStageMoved,
  PersistTask,
  RecomputeProjectProgress,
  TaskState,
  Transition,
  initial_state,
  move_stage,
  parse_stage,
  reject,
  set_progress,
)
from taskflow.core.progress import recompute_progress
from taskflow.core.relations import is_assignee, is_project_member, is_team_match
from taskflow.core.roles import Capability, Principal, Role, has_wildcard
from taskflow.models import Project, Task, TaskLog, new_id
from taskflow.notifications.events import TaskNotifier
from taskflow.repository import SqlRepository
from taskflow.schemas import TaskCreateIn

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
  {
    "title",
    "description",
    "assignee_id",
    "requesting_department_id",
    "executing_department_id",
    "priority",
    "remark",
    "estimated_hours",
    "due_date",
  }
)
LIFECYCLE_FIELDS = frozenset({"kanban_stage", "status", "progress", "start_date", "completed_date"})
REQUIRED_FIELDS = frozenset({"title", "assignee_id", "requesting_department_id", "executing_department_id", "priority"})


class TaskService:
  def __init__(self, repo: SqlRepository, notifier: TaskNotifier) -> None:
    self.repo = repo
    self.notifier = notifier

  async def _load_task(self, task_id: str) -> Task:
    task = await self.repo.find_task_by_id(task_id)
    if task is None:
      raise NotFoundError("Task not found", reason="task")
    return task

  async def _load_project(self, project_id: str) -> Project:
    project = await self.repo.find_project_by_id(project_id)
    if project is None:
      raise NotFoundError("Project not found", reason="project")
    return project

  async def _check_department(self, department_id: str) -> None:
    if await self.repo.find_department_by_id(department_id) is None:
      raise NotFoundError("Department not found", reason="department")

  async def _check_assignee(self, project: Project, assignee_id: str) -> None:
    user = await self.repo.find_user_by_id(assignee_id)
    if user is None or not user.active:
      raise NotFoundError("Assigned user not found", reason="assignee")
    assignee = Principal.from_user(user)
    if assignee.role is Role.EMPLOYEE and not (is_project_member(assignee, project) or is_team_match(assignee, project)):
      raise BusinessRuleError("Cannot assign task to user outside project team", reason="assignee outside project")

  async def _emit(self, hook: str, *args: Any, **kwargs: Any) -> None:
    try:
      await getattr(self.notifier, hook)(*args, **kwargs)
    except Exception:
      logger.exception("notification_failed", hook=hook)

  async def _recompute(self, project: Project, actor: Principal | None) -> None:
    try:
      old, new = await recompute_progress(self.repo, project)
    except Exception:
      logger.error("project_progress_stale", project_id=project.id)
      raise
    if old != new:
      await self._emit("on_project_progress_changed", project, old, new, actor=actor)

  async def _apply(
    self,
    task: Task,
    project: Project,
    transition: Transition,
    actor: Principal,
    *,
    event_type: str,
    payload: dict[str, Any] | None = None,
  ) -> None:
    for effect in transition.effects:
      if isinstance(effect, PersistTask):
        transition.state.apply_to(task)
        self.repo.add_audit(
          event_type=event_type,
          entity_type="Task",
          entity_id=task.id,
          project_id=task.project_id,
          task_id=task.id,
          actor_id=actor.id,
          payload={"fromStage": transition.old_stage.value, "toStage": transition.new_stage.value, **(payload or {})},
        )
        await self.repo.save_task(task)
      elif isinstance(effect, RecomputeProjectProgress):
        await self._recompute(project, actor)
      elif isinstance(effect, NotifyStageMoved):
        await self._emit("on_stage_moved", task, effect.old_stage, effect.new_stage, actor=actor)
      elif isinstance(effect, NotifyApprovalRequested):
        await self._emit("on_approval_requested", task, actor=actor)
    logger.info(
      "task_stage_moved",
      task_id=task.id,
      actor_id=actor.id,
      from_stage=transition.old_stage.value,
      to_stage=transition.new_stage.value,
    )

  async def get_task(self, task_id: str, actor: Principal) -> Task:
    task = await self._load_task(task_id)
    require(can_access_task(actor, task), action="access this task", user=actor, entity_id=task.id)
    return task

  async def list_tasks(self, actor: Principal, *, project_id: str | None = None, stage: Any = None) -> list[Task]:
    """Tasks scoped by role: wildcard roles see all, team leads see their
    team's projects plus their own assignments, everybody else sees what
    is assigned to them."""
    target = parse_stage(stage) if stage else None
    if project_id:
      project = await self._load_project(project_id)
      require(can_access_project(actor, project), action="list tasks of this project", user=actor, entity_id=project.id)
    tasks = await self.repo.find_tasks(stage=target.value if target else None, project_id=project_id)
    if has_wildcard(actor.role):
      return list(tasks)
    if actor.can(Capability.VIEW_TEAM_DATA):
      team_projects = {p.id for p in await self.repo.find_projects() if is_team_match(actor, p)}
      return [t for t in tasks if t.project_id in team_projects or is_assignee(actor, t)]
    return [t for t in tasks if is_assignee(actor, t)]

  async def list_task_logs(self, task_id: str, actor: Principal) -> list[TaskLog]:
    task = await self.get_task(task_id, actor)
    return list(await self.repo.list_task_logs(task.id))

  async def create_task(self, project_id: str, payload: TaskCreateIn, actor: Principal) -> Task:
    stage = parse_stage(payload.kanbanStage)
    project = await self._load_project(project_id)
    require(can_modify_project(actor, project), action="create tasks in this project", user=actor, entity_id=project.id)
    if stage is KanbanStage.DONE:
      require(can_approve(actor), action="create a completed task", user=actor, entity_id=project.id)
    await self._check_department(payload.requestingDepartmentId)
    await self._check_department(payload.executingDepartmentId)
    await self._check_assignee(project, payload.assigneeId)

    task = Task(
      id=new_id(),
      project_id=project.id,
      title=payload.title.strip(),
      description=payload.description or "",
      assignee_id=payload.assigneeId,
      requesting_department_id=payload.requestingDepartmentId,
      executing_department_id=payload.executingDepartmentId,
      created_by_id=actor.id,
      priority=payload.priority,
      estimated_hours=payload.estimatedHours,
      due_date=payload.dueDate,
    )
    state = initial_state(stage)
    if payload.remark:
      state = replace(state, remark=payload.remark)
    state.apply_to(task)
    self.repo.add_audit(
      event_type="task.created",
      entity_type="Task",
      entity_id=task.id,
      project_id=project.id,
      task_id=task.id,
      actor_id=actor.id,
      payload={"title": task.title, "kanbanStage": task.kanban_stage, "assigneeId": task.assignee_id},
    )
    await self.repo.save_task(task)
    logger.info("task_created", task_id=task.id, project_id=project.id, actor_id=actor.id, stage=task.kanban_stage)

    await self._recompute(project, actor)
    await self._emit("on_task_created", task, actor=actor)
    if stage is KanbanStage.REVIEW:
      await self._emit("on_approval_requested", task, actor=actor)
    return task

  async def update_task(self, task_id: str, patch: dict[str, Any], actor: Principal) -> Task:
    lifecycle = sorted(set(patch) & LIFECYCLE_FIELDS)
    if lifecycle:
      raise ValidationError(
        f"{', '.join(lifecycle)} cannot be patched; use the stage or progress endpoints",
        reason="lifecycle field",
      )
    unknown = sorted(set(patch) - UPDATABLE_FIELDS)
    if unknown:
      raise ValidationError(f"Unknown task fields: {', '.join(unknown)}", reason="unknown field")
    missing = sorted(k for k in patch if k in REQUIRED_FIELDS and patch[k] is None)
    if missing:
      raise ValidationError(f"{', '.join(missing)} cannot be cleared", reason="missing required reference")
    if "title" in patch:
      title = patch["title"].strip()
      if not title:
        raise ValidationError("Task title cannot be blank", reason="blank title")
      patch = {**patch, "title": title}

    task = await self._load_task(task_id)
    project = await self._load_project(task.project_id)
    require(can_modify_task(actor, task, project), action="modify this task", user=actor, entity_id=task.id)

    for key in ("requesting_department_id", "executing_department_id"):
      if key in patch and patch[key] != getattr(task, key):
        await self._check_department(patch[key])
    if "assignee_id" in patch and patch["assignee_id"] != task.assignee_id:
      await self._check_assignee(project, patch["assignee_id"])

    changed: dict[str, Any] = {}
    for key, val in patch.items():
      if getattr(task, key) != val:
        setattr(task, key, val)
        changed[key] = val[:500] if isinstance(val, str) else val

    self.repo.add_audit(
      event_type="task.updated",
      entity_type="Task",
      entity_id=task.id,
      project_id=task.project_id,
      task_id=task.id,
      actor_id=actor.id,
      payload={"changed": sorted(changed), "fields": changed},
    )
    await self.repo.save_task(task)
    logger.info("task_updated", task_id=task.id, actor_id=actor.id, changed=sorted(changed))
    return task

  async def _move(self, task: Task, project: Project, target: KanbanStage, actor: Principal, *, event_type: str) -> Transition:
    state = TaskState.of(task)
    if state.stage is KanbanStage.REVIEW and target is KanbanStage.DONE:
      # The approval gate itself lives in the state machine.
      require(can_access_task(actor, task), action="approve this task", user=actor, entity_id=task.id)
    else:
      require(can_update_task_status(actor, task, project), action="move this task", user=actor, entity_id=task.id)
    transition = move_stage(state, target, actor)
    await self._apply(task, project, transition, actor, event_type=event_type)
    return transition

  async def move_task_stage(self, task_id: str, new_stage: Any, actor: Principal) -> tuple[Task, KanbanStage, KanbanStage]:
    target = parse_stage(new_stage)
    task = await self._load_task(task_id)
    project = await self._load_project(task.project_id)
    event_type = "task.approved" if task.kanban_stage == KanbanStage.REVIEW.value and target is KanbanStage.DONE else "task.moved"
    transition = await self._move(task, project, target, actor, event_type=event_type)
    return task, transition.old_stage, transition.new_stage

  async def approve_task(self, task_id: str, actor: Principal) -> Task:
    task = await self._load_task(task_id)
    if task.kanban_stage != KanbanStage.REVIEW.value:
      raise BusinessRuleError("Task must be in Review stage to approve", reason="not in review")
    project = await self._load_project(task.project_id)
    await self._move(task, project, KanbanStage.DONE, actor, event_type="task.approved")
    return task

  async def reject_task(self, task_id: str, reason: str | None, actor: Principal) -> Task:
    task = await self._load_task(task_id)
    project = await self._load_project(task.project_id)
    transition = reject(TaskState.of(task), reason, actor)
    require(can_access_task(actor, task), action="reject this task", user=actor, entity_id=task.id)
    await self._apply(task, project, transition, actor, event_type="task.rejected", payload={"reason": reason})
    return task

  async def log_progress(
    self,
    task_id: str,
    progress: int,
    actor: Principal,
    *,
    remark: str = "Progress updated",
    hours_worked: float = 0,
  ) -> tuple[Task, TaskLog]:
    task = await self._load_task(task_id)
    project = await self._load_project(task.project_id)
    require(can_update_task_status(actor, task, project), action="update progress of this task", user=actor, entity_id=task.id)
    state = set_progress(TaskState.of(task), progress)
    state.apply_to(task)

    entry = TaskLog(
      id=new_id(),
      task_id=task.id,
      updated_by_id=actor.id,
      progress=progress,
      remark=remark,
      hours_worked=hours_worked,
    )
    self.repo.add_task_log(entry)
    self.repo.add_audit(
      event_type="task.progress_logged",
      entity_type="Task",
      entity_id=task.id,
      project_id=task.project_id,
      task_id=task.id,
      actor_id=actor.id,
      payload={"progress": progress, "hoursWorked": hours_worked},
    )
    await self.repo.save_task(task)
    logger.info("task_progress_logged", task_id=task.id, actor_id=actor.id, progress=progress)
    return task, entry

  async def delete_task(self, task_id: str, actor: Principal) -> None:
    task = await self._load_task(task_id)
    project = await self._load_project(task.project_id)
    require(can_modify_task(actor, task, project), action="delete this task", user=actor, entity_id=task.id)
    self.repo.add_audit(
      event_type="task.deleted",
      entity_type="Task",
      entity_id=task.id,
      project_id=task.project_id,
      actor_id=actor.id,
      payload={"title": task.title, "kanbanStage": task.kanban_stage},
    )
    await self.repo.delete_task(task)
    logger.info("task_deleted", task_id=task_id, project_id=project.id, actor_id=actor.id)
    await self._recompute(project, actor)
