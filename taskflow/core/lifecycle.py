"""Kanban lifecycle for tasks.

The transition functions are pure: they take an immutable ``TaskState``
and return the next state together with the effects the caller has to
apply (persist, recompute the project, notify). Nothing in this module
reads or writes storage.

Stages may move to any other stage. The only gated edge is Review to
Done, which needs an approver.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from taskflow.core.access import can_approve
from taskflow.core.errors import AuthorizationError, BusinessRuleError, ValidationError
from taskflow.core.roles import Principal


class KanbanStage(str, Enum):
  BACKLOG = "Backlog"
  TODO = "Todo"
  IN_PROGRESS = "In Progress"
  REVIEW = "Review"
  DONE = "Done"


class TaskStatus(str, Enum):
  PENDING = "Pending"
  IN_PROGRESS = "In Progress"
  REVIEW = "Review"
  DONE = "Done"


STAGE_ORDER: tuple[KanbanStage, ...] = tuple(KanbanStage)

STAGE_STATUS: dict[KanbanStage, TaskStatus] = {
  KanbanStage.BACKLOG: TaskStatus.PENDING,
  KanbanStage.TODO: TaskStatus.PENDING,
  KanbanStage.IN_PROGRESS: TaskStatus.IN_PROGRESS,
  KanbanStage.REVIEW: TaskStatus.REVIEW,
  KanbanStage.DONE: TaskStatus.DONE,
}

STAGE_COLORS: dict[KanbanStage, str] = {
  KanbanStage.BACKLOG: "#6c757d",
  KanbanStage.TODO: "#007bff",
  KanbanStage.IN_PROGRESS: "#ffc107",
  KanbanStage.REVIEW: "#fd7e14",
  KanbanStage.DONE: "#28a745",
}


def parse_stage(value: Any) -> KanbanStage:
  if isinstance(value, KanbanStage):
    return value
  try:
    return KanbanStage(str(value))
  except ValueError:
    raise ValidationError(f"Invalid Kanban stage: {value!r}", reason="unknown stage") from None


def status_for_stage(stage: KanbanStage) -> TaskStatus:
  return STAGE_STATUS[stage]


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskState:
  stage: KanbanStage = KanbanStage.BACKLOG
  progress: int = 0
  start_date: datetime | None = None
  completed_date: datetime | None = None
  remark: str | None = None

  @property
  def status(self) -> TaskStatus:
    return STAGE_STATUS[self.stage]

  @classmethod
  def of(cls, task: Any) -> TaskState:
    return cls(
      stage=parse_stage(task.kanban_stage),
      progress=int(task.progress or 0),
      start_date=task.start_date,
      completed_date=task.completed_date,
      remark=task.remark,
    )

  def apply_to(self, task: Any) -> None:
    task.kanban_stage = self.stage.value
    task.status = self.status.value
    task.progress = self.progress
    task.start_date = self.start_date
    task.completed_date = self.completed_date
    task.remark = self.remark


@dataclass(frozen=True)
class PersistTask:
  pass


@dataclass(frozen=True)
class RecomputeProjectProgress:
  pass


@dataclass(frozen=True)
class NotifyStageMoved:
  old_stage: KanbanStage
  new_stage: KanbanStage


@dataclass(frozen=True)
class NotifyApprovalRequested:
  pass


Effect = PersistTask | RecomputeProjectProgress | NotifyStageMoved | NotifyApprovalRequested


@dataclass(frozen=True)
class Transition:
  old_stage: KanbanStage
  new_stage: KanbanStage
  state: TaskState
  effects: tuple[Effect, ...] = field(default_factory=tuple)

  def has(self, effect_type: type) -> bool:
    return any(isinstance(e, effect_type) for e in self.effects)


def _enter(state: TaskState, stage: KanbanStage, now: datetime) -> TaskState:
  nxt = replace(state, stage=stage)
  if stage is KanbanStage.IN_PROGRESS and nxt.start_date is None:
    nxt = replace(nxt, start_date=now)
  if stage is KanbanStage.DONE:
    nxt = replace(nxt, progress=100)
    if nxt.completed_date is None:
      nxt = replace(nxt, completed_date=now)
  return nxt


def initial_state(stage: Any = KanbanStage.BACKLOG, *, now: datetime | None = None) -> TaskState:
  return _enter(TaskState(), parse_stage(stage), now or _utcnow())


def move_stage(state: TaskState, new_stage: Any, actor: Principal, *, now: datetime | None = None) -> Transition:
  target = parse_stage(new_stage)
  old = state.stage
  if old is KanbanStage.REVIEW and target is KanbanStage.DONE:
    decision = can_approve(actor)
    if not decision:
      raise AuthorizationError("Only a team lead, IT admin or managing director can approve task completion", reason=decision.reason)

  nxt = _enter(state, target, now or _utcnow())

  # Ordered as the caller applies them: persist, aggregate, then notify.
  effects: list[Effect] = [PersistTask()]
  if old is KanbanStage.DONE or target is KanbanStage.DONE:
    effects.append(RecomputeProjectProgress())
  effects.append(NotifyStageMoved(old, target))
  if target is KanbanStage.REVIEW and old is not KanbanStage.REVIEW:
    effects.append(NotifyApprovalRequested())
  return Transition(old_stage=old, new_stage=target, state=nxt, effects=tuple(effects))


def reject(state: TaskState, reason: str | None, actor: Principal, *, now: datetime | None = None) -> Transition:
  if state.stage is not KanbanStage.REVIEW:
    raise BusinessRuleError("Only tasks in Review can be rejected", reason="not in review")
  decision = can_approve(actor)
  if not decision:
    raise AuthorizationError("Only a team lead, IT admin or managing director can reject tasks", reason=decision.reason)
  tr = move_stage(state, KanbanStage.IN_PROGRESS, actor, now=now)
  text = (reason or "").strip()
  if not text:
    return tr
  return replace(tr, state=replace(tr.state, remark=f"Rejected: {text}"[:500]))


def set_progress(state: TaskState, progress: int) -> TaskState:
  if not isinstance(progress, int) or isinstance(progress, bool) or progress < 0 or progress > 100:
    raise ValidationError("Progress must be an integer between 0 and 100", reason="progress out of range")
  if state.stage is KanbanStage.DONE and progress != 100:
    raise BusinessRuleError("A task in Done stays at 100% progress", reason="task done")
  return replace(state, progress=progress)


def _as_utc(dt: datetime) -> datetime:
  return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def is_overdue(task: Any, *, now: datetime | None = None) -> bool:
  if not task.due_date or parse_stage(task.kanban_stage) is KanbanStage.DONE:
    return False
  return _as_utc(task.due_date) < (now or _utcnow())


def days_remaining(task: Any, *, now: datetime | None = None) -> int | None:
  if not task.due_date:
    return None
  delta = _as_utc(task.due_date) - (now or _utcnow())
  return math.ceil(delta.total_seconds() / 86400)


def stage_color(stage: Any) -> str:
  return STAGE_COLORS[parse_stage(stage)]
