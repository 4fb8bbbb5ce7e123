"""Relational facts between a principal and a task or project.

Pure lookups over already-loaded objects; nothing here touches storage.
"""

from __future__ import annotations

from typing import Protocol

from taskflow.core.roles import Principal


class TaskLike(Protocol):
  project_id: str
  assignee_id: str
  created_by_id: str
  requesting_department_id: str
  executing_department_id: str


class ProjectLike(Protocol):
  department_id: str
  team_id: str | None
  created_by_id: str
  member_ids: list[str]


def is_creator(user: Principal, entity: TaskLike | ProjectLike) -> bool:
  return bool(entity.created_by_id) and entity.created_by_id == user.id


def is_assignee(user: Principal, task: TaskLike) -> bool:
  return bool(task.assignee_id) and task.assignee_id == user.id


def is_department_match(user: Principal, task: TaskLike) -> bool:
  if not user.department_id:
    return False
  return user.department_id in (task.requesting_department_id, task.executing_department_id)


def is_team_match(user: Principal, project: ProjectLike) -> bool:
  if project.team_id:
    return user.team_id is not None and user.team_id == project.team_id
  return user.department_id is not None and user.department_id == project.department_id


def is_project_member(user: Principal, project: ProjectLike) -> bool:
  return user.id in (project.member_ids or [])


def is_cross_department(task: TaskLike) -> bool:
  return task.requesting_department_id != task.executing_department_id
