from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from taskflow.core.roles import Principal
from taskflow.deps import get_kanban_service, get_principal, get_project_service, get_task_service
from taskflow.models import Project
from taskflow.routers.tasks import task_out
from taskflow.schemas import (
  KanbanBoardOut,
  KanbanStatsOut,
  ProjectAdjustmentIn,
  ProjectCreateIn,
  ProjectMemberIn,
  ProjectOut,
  ProjectUpdateIn,
  TaskCreateIn,
  TaskOut,
)
from taskflow.services.kanban import KanbanService
from taskflow.services.projects import ProjectService
from taskflow.services.tasks import TaskService

router = APIRouter(prefix="/projects", tags=["projects"])

# Model attribute -> request field for PATCH payloads.
_PATCH_FIELDS = [
  ("name", "name"),
  ("description", "description"),
  ("status", "status"),
  ("priority", "priority"),
  ("start_date", "startDate"),
  ("deadline", "deadline"),
]


def _project_out(p: Project, task_ids: list[str] | None = None) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    name=p.name,
    description=p.description or "",
    departmentId=p.department_id,
    teamId=p.team_id,
    createdById=p.created_by_id,
    status=p.status,
    priority=p.priority,
    progress=p.progress,
    manualAdjustment=p.manual_adjustment,
    memberIds=list(p.member_ids or []),
    taskIds=task_ids or [],
    startDate=p.start_date,
    deadline=p.deadline,
    createdAt=p.created_at,
    updatedAt=p.updated_at,
  )


@router.post("", response_model=ProjectOut)
async def create_project(
  payload: ProjectCreateIn,
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> ProjectOut:
  return _project_out(await svc.create_project(payload, actor))


@router.get("", response_model=list[ProjectOut])
async def list_projects(
  scope: str = Query(default="all"),
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> list[ProjectOut]:
  return [_project_out(p) for p in await svc.list_projects(actor, scope=scope)]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, actor: Principal = Depends(get_principal), svc: ProjectService = Depends(get_project_service)) -> ProjectOut:
  p, task_ids = await svc.get_project(project_id, actor)
  return _project_out(p, task_ids)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
  project_id: str,
  payload: ProjectUpdateIn,
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> ProjectOut:
  patch = {attr: getattr(payload, name) for attr, name in _PATCH_FIELDS if name in payload.model_fields_set}
  return _project_out(await svc.update_project(project_id, patch, actor))


@router.patch("/{project_id}/adjustment", response_model=ProjectOut)
async def set_adjustment(
  project_id: str,
  payload: ProjectAdjustmentIn,
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> ProjectOut:
  return _project_out(await svc.set_manual_adjustment(project_id, payload.manualAdjustment, actor))


@router.post("/{project_id}/recompute", response_model=ProjectOut)
async def recompute_project(project_id: str, actor: Principal = Depends(get_principal), svc: ProjectService = Depends(get_project_service)) -> ProjectOut:
  return _project_out(await svc.recompute(project_id, actor))


@router.post("/{project_id}/members", response_model=ProjectOut)
async def add_member(
  project_id: str,
  payload: ProjectMemberIn,
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> ProjectOut:
  return _project_out(await svc.add_member(project_id, payload.userId, actor))


@router.delete("/{project_id}/members/{user_id}", response_model=ProjectOut)
async def remove_member(
  project_id: str,
  user_id: str,
  actor: Principal = Depends(get_principal),
  svc: ProjectService = Depends(get_project_service),
) -> ProjectOut:
  return _project_out(await svc.remove_member(project_id, user_id, actor))


@router.get("/{project_id}/kanban", response_model=KanbanBoardOut)
async def project_board(project_id: str, actor: Principal = Depends(get_principal), svc: KanbanService = Depends(get_kanban_service)) -> KanbanBoardOut:
  p, board, stats = await svc.project_board(project_id, actor)
  return KanbanBoardOut(
    projectId=p.id,
    projectName=p.name,
    projectProgress=p.progress,
    board={stage: [task_out(t) for t in tasks] for stage, tasks in board.items()},
    stats=KanbanStatsOut(**stats),
  )


@router.post("/{project_id}/tasks", response_model=TaskOut)
async def create_task(
  project_id: str,
  payload: TaskCreateIn,
  actor: Principal = Depends(get_principal),
  svc: TaskService = Depends(get_task_service),
) -> TaskOut:
  return task_out(await svc.create_task(project_id, payload, actor))
