from __future__ import annotations

from fastapi import APIRouter, Depends

from taskflow.core.roles import Principal
from taskflow.deps import get_kanban_service, get_principal
from taskflow.routers.tasks import task_out
from taskflow.schemas import KanbanBoardOut, KanbanStatsOut, TaskOut
from taskflow.services.kanban import KanbanService

router = APIRouter(prefix="/kanban", tags=["kanban"])


@router.get("/me", response_model=KanbanBoardOut)
async def my_board(actor: Principal = Depends(get_principal), svc: KanbanService = Depends(get_kanban_service)) -> KanbanBoardOut:
  board, stats = await svc.my_board(actor)
  return KanbanBoardOut(
    board={stage: [task_out(t) for t in tasks] for stage, tasks in board.items()},
    stats=KanbanStatsOut(**stats),
  )


@router.get("/stages/{stage}", response_model=list[TaskOut])
async def tasks_by_stage(
  stage: str,
  projectId: str | None = None,
  actor: Principal = Depends(get_principal),
  svc: KanbanService = Depends(get_kanban_service),
) -> list[TaskOut]:
  _stage, tasks = await svc.tasks_by_stage(stage, actor, project_id=projectId)
  return [task_out(t) for t in tasks]


@router.get("/pending-approvals", response_model=list[TaskOut])
async def pending_approvals(actor: Principal = Depends(get_principal), svc: KanbanService = Depends(get_kanban_service)) -> list[TaskOut]:
  return [task_out(t) for t in await svc.pending_approvals(actor)]
