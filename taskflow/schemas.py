from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import field_validator


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TaskPriority = Literal["Low", "Medium", "High", "Urgent"]
ProjectPriority = Literal["low", "medium", "high", "urgent"]
ProjectStatus = Literal["planning", "active", "completed", "on_hold"]


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


class TaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  description: str = Field(default="", max_length=1000)
  assigneeId: str
  requestingDepartmentId: str
  executingDepartmentId: str
  kanbanStage: str = "Backlog"
  priority: TaskPriority = "Medium"
  remark: str | None = Field(default=None, max_length=500)
  estimatedHours: float = Field(default=0, ge=0)
  dueDate: datetime | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=1000)
  assigneeId: str | None = None
  requestingDepartmentId: str | None = None
  executingDepartmentId: str | None = None
  priority: TaskPriority | None = None
  remark: str | None = Field(default=None, max_length=500)
  estimatedHours: float | None = Field(default=None, ge=0)
  dueDate: datetime | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskMoveIn(BaseModel):
  newStage: str


class TaskRejectIn(BaseModel):
  reason: str | None = Field(default=None, max_length=480)


class TaskProgressIn(BaseModel):
  progress: int
  remark: str = Field(default="Progress updated", min_length=1, max_length=500)
  hoursWorked: float = Field(default=0, ge=0)


class TaskOut(BaseModel):
  id: str
  projectId: str
  title: str
  description: str
  assigneeId: str
  requestingDepartmentId: str
  executingDepartmentId: str
  createdById: str
  kanbanStage: str
  status: str
  progress: int
  priority: str
  remark: str | None
  estimatedHours: float
  dueDate: datetime | None
  startDate: datetime | None
  completedDate: datetime | None
  isOverdue: bool
  daysRemaining: int | None
  isCrossDepartment: bool
  stageColor: str
  createdAt: datetime
  updatedAt: datetime


class TaskMoveOut(BaseModel):
  task: TaskOut
  fromStage: str
  toStage: str


class TaskLogOut(BaseModel):
  id: str
  taskId: str
  updatedById: str
  progress: int
  remark: str
  hoursWorked: float
  createdAt: datetime


class ProjectCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  description: str = Field(default="", max_length=1000)
  departmentId: str
  teamId: str | None = None
  priority: ProjectPriority = "medium"
  startDate: datetime
  deadline: datetime
  memberIds: list[str] = []

  @field_validator("startDate", "deadline", mode="before")
  @classmethod
  def _dates_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class ProjectUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=1000)
  status: ProjectStatus | None = None
  priority: ProjectPriority | None = None
  startDate: datetime | None = None
  deadline: datetime | None = None

  @field_validator("startDate", "deadline", mode="before")
  @classmethod
  def _dates_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class ProjectAdjustmentIn(BaseModel):
  manualAdjustment: int


class ProjectMemberIn(BaseModel):
  userId: str


class ProjectOut(BaseModel):
  id: str
  name: str
  description: str
  departmentId: str
  teamId: str | None
  createdById: str
  status: str
  priority: str
  progress: int
  manualAdjustment: int
  memberIds: list[str]
  taskIds: list[str]
  startDate: datetime
  deadline: datetime
  createdAt: datetime
  updatedAt: datetime


class KanbanStatsOut(BaseModel):
  total: int
  byStage: dict[str, int]


class KanbanBoardOut(BaseModel):
  projectId: str | None = None
  projectName: str | None = None
  projectProgress: int | None = None
  board: dict[str, list[TaskOut]]
  stats: KanbanStatsOut


class InAppNotificationOut(BaseModel):
  id: str
  level: str
  title: str
  body: str
  eventType: str | None
  taxonomy: str
  entityType: str | None
  entityId: str | None
  readAt: datetime | None
  createdAt: datetime


class AuditOut(BaseModel):
  id: str
  projectId: str | None
  taskId: str | None
  actorId: str | None
  eventType: str
  entityType: str
  entityId: str | None
  payload: dict[str, Any]
  createdAt: datetime
