"""Access control gateway.

Combines the role model with the relational facts from ``relations`` into
allow/deny decisions for one (principal, entity) pair. Each check returns
a ``Decision``; ``require`` turns a denial into an ``AuthorizationError``.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from taskflow.core.errors import AuthorizationError
from taskflow.core.relations import (
  ProjectLike,
  TaskLike,
  is_assignee,
  is_creator,
  is_department_match,
  is_project_member,
  is_team_match,
)
from taskflow.core.roles import APPROVER_ROLES, Capability, Principal, Role, has_wildcard

logger = structlog.get_logger()


@dataclass(frozen=True)
class Decision:
  allowed: bool
  reason: str | None = None

  def __bool__(self) -> bool:
    return self.allowed


ALLOW = Decision(True)


def _deny(reason: str) -> Decision:
  return Decision(False, reason)


def can_access_task(user: Principal, task: TaskLike) -> Decision:
  if has_wildcard(user.role):
    return ALLOW
  # Team leads see every task, not only their department's.
  if user.role is Role.TEAM_LEAD:
    return ALLOW
  if is_creator(user, task) or is_assignee(user, task):
    return ALLOW
  if is_department_match(user, task):
    return ALLOW
  return _deny("not related to task")


def can_access_project(user: Principal, project: ProjectLike) -> Decision:
  if has_wildcard(user.role):
    return ALLOW
  if user.can(Capability.VIEW_TEAM_DATA) and is_team_match(user, project):
    return ALLOW
  if is_project_member(user, project):
    return ALLOW
  if is_creator(user, project):
    return ALLOW
  return _deny("not related to project")


def can_modify_project(user: Principal, project: ProjectLike) -> Decision:
  if has_wildcard(user.role):
    return ALLOW
  if user.can(Capability.VIEW_TEAM_DATA) and is_team_match(user, project):
    return ALLOW
  if is_creator(user, project):
    return ALLOW
  return _deny("not project modifier")


def can_modify_task(user: Principal, task: TaskLike, project: ProjectLike | None) -> Decision:
  if has_wildcard(user.role):
    return ALLOW
  if is_creator(user, task):
    return ALLOW
  if project is not None and can_modify_project(user, project):
    return ALLOW
  return _deny("not modifier")


def can_update_task_status(user: Principal, task: TaskLike, project: ProjectLike | None) -> Decision:
  # Assignees move their own work even without modify rights.
  if is_assignee(user, task) and user.can(Capability.UPDATE_TASK_STATUS):
    return ALLOW
  return can_modify_task(user, task, project)


def can_approve(user: Principal) -> Decision:
  if user.role in APPROVER_ROLES:
    return ALLOW
  return _deny("not approver")


def require(decision: Decision, *, action: str, user: Principal, entity_id: str | None = None) -> None:
  if decision.allowed:
    return
  logger.warning(
    "access_denied",
    action=action,
    user_id=user.id,
    role=user.role.value,
    entity_id=entity_id,
    reason=decision.reason,
  )
  raise AuthorizationError(f"You do not have permission to {action}", reason=decision.reason)
