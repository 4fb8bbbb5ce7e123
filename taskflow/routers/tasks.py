from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from taskflow.core.lifecycle import days_remaining, is_overdue, stage_color
from taskflow.core.relations import is_cross_department
from taskflow.core.roles import Principal
from taskflow.deps import get_principal, get_task_service
from taskflow.models import Task, TaskLog
from taskflow.schemas import (
  TaskLogOut,
  TaskMoveIn,
  TaskMoveOut,
  TaskOut,
  TaskProgressIn,
  TaskRejectIn,
  TaskUpdateIn,
)
from taskflow.services.tasks import TaskService

router = APIRouter(tags=["tasks"])

# Model attribute -> request field for PATCH payloads.
_PATCH_FIELDS = [
  ("title", "title"),
  ("description", "description"),
  ("assignee_id", "assigneeId"),
  ("requesting_department_id", "requestingDepartmentId"),
  ("executing_department_id", "executingDepartmentId"),
  ("priority", "priority"),
  ("remark", "remark"),
  ("estimated_hours", "estimatedHours"),
  ("due_date", "dueDate"),
]


def task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    projectId=t.project_id,
    title=t.title,
    description=t.description or "",
    assigneeId=t.assignee_id,
    requestingDepartmentId=t.requesting_department_id,
    executingDepartmentId=t.executing_department_id,
    createdById=t.created_by_id,
    kanbanStage=t.kanban_stage,
    status=t.status,
    progress=t.progress,
    priority=t.priority,
    remark=t.remark,
    estimatedHours=t.estimated_hours or 0,
    dueDate=t.due_date,
    startDate=t.start_date,
    completedDate=t.completed_date,
    isOverdue=is_overdue(t),
    daysRemaining=days_remaining(t),
    isCrossDepartment=is_cross_department(t),
    stageColor=stage_color(t.kanban_stage),
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def _log_out(entry: TaskLog) -> TaskLogOut:
  return TaskLogOut(
    id=entry.id,
    taskId=entry.task_id,
    updatedById=entry.updated_by_id,
    progress=entry.progress,
    remark=entry.remark,
    hoursWorked=entry.hours_worked or 0,
    createdAt=entry.created_at,
  )


@router.get("/tasks", response_model=list[TaskOut])
async def list_tasks(
  projectId: str | None = Query(default=None),
  stage: str | None = Query(default=None),
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> list[TaskOut]:
  return [task_out(t) for t in await svc.list_tasks(actor, project_id=projectId, stage=stage)]


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, actor: Principal = Depends(get_principal), svc: TaskService = Depends(get_task_service)) -> TaskOut:
  return task_out(await svc.get_task(task_id, actor))


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> TaskOut:
  fields_set = payload.model_fields_set
  patch = {attr: getattr(payload, name) for attr, name in _PATCH_FIELDS if name in fields_set}
  return task_out(await svc.update_task(task_id, patch, actor))


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, actor: Principal = Depends(get_principal), svc: TaskService = Depends(get_task_service)) -> dict:
  await svc.delete_task(task_id, actor)
  return {"ok": True}


@router.post("/tasks/{task_id}/move", response_model=TaskMoveOut)
async def move_task(
  task_id: str,
  payload: TaskMoveIn,
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> TaskMoveOut:
  t, old, new = await svc.move_task_stage(task_id, payload.newStage, actor)
  return TaskMoveOut(task=task_out(t), fromStage=old.value, toStage=new.value)


@router.post("/tasks/{task_id}/approve", response_model=TaskOut)
async def approve_task(task_id: str, actor: Principal = Depends(get_principal), svc: TaskService = Depends(get_task_service)) -> TaskOut:
  return task_out(await svc.approve_task(task_id, actor))


@router.post("/tasks/{task_id}/reject", response_model=TaskOut)
async def reject_task(
  task_id: str,
  payload: TaskRejectIn,
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> TaskOut:
  return task_out(await svc.reject_task(task_id, payload.reason, actor))


@router.post("/tasks/{task_id}/progress", response_model=TaskOut)
async def log_progress(
  task_id: str,
  payload: TaskProgressIn,
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> TaskOut:
  t, _entry = await svc.log_progress(task_id, payload.progress, actor, remark=payload.remark, hours_worked=payload.hoursWorked)
  return task_out(t)


@router.get("/tasks/{task_id}/logs", response_model=list[TaskLogOut])
async def list_task_logs(task_id: str, actor: Principal = Depends(get_principal), svc: TaskService = Depends(get_task_service)) -> list[TaskLogOut]:
  return [_log_out(e) for e in await svc.list_task_logs(task_id, actor)]
