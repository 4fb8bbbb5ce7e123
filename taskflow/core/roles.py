"""Role and capability model.

Roles are stored as plain strings; ``parse_role`` is the only place a
stored string becomes a ``Role``. Everything past the request boundary
works with ``Principal`` and never compares raw role strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from taskflow.core.errors import ValidationError


class Role(str, Enum):
  MANAGING_DIRECTOR = "managing_director"
  IT_ADMIN = "it_admin"
  TEAM_LEAD = "team_lead"
  EMPLOYEE = "employee"


class Capability(str, Enum):
  WILDCARD = "*"
  VIEW_TEAM_DATA = "view_team_data"
  CREATE_PROJECT = "create_project"
  CREATE_USER = "create_user"
  ASSIGN_TASKS = "assign_tasks"
  MANAGE_TEAM_MEMBERS = "manage_team_members"
  VIEW_OWN_TASKS = "view_own_tasks"
  UPDATE_TASK_STATUS = "update_task_status"
  VIEW_ASSIGNED_PROJECTS = "view_assigned_projects"
  DELETE_USER = "delete_user"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
  Role.MANAGING_DIRECTOR: frozenset({Capability.WILDCARD}),
  Role.IT_ADMIN: frozenset({Capability.WILDCARD}),
  Role.TEAM_LEAD: frozenset(
    {
      Capability.VIEW_TEAM_DATA,
      Capability.CREATE_PROJECT,
      Capability.CREATE_USER,
      Capability.ASSIGN_TASKS,
      Capability.MANAGE_TEAM_MEMBERS,
      Capability.VIEW_OWN_TASKS,
      Capability.UPDATE_TASK_STATUS,
      Capability.VIEW_ASSIGNED_PROJECTS,
    }
  ),
  Role.EMPLOYEE: frozenset(
    {
      Capability.VIEW_OWN_TASKS,
      Capability.UPDATE_TASK_STATUS,
      Capability.VIEW_ASSIGNED_PROJECTS,
    }
  ),
}

APPROVER_ROLES: frozenset[Role] = frozenset({Role.TEAM_LEAD, Role.IT_ADMIN, Role.MANAGING_DIRECTOR})

_LEGACY_ALIASES = {
  "md": Role.MANAGING_DIRECTOR,
  "admin": Role.IT_ADMIN,
  "teamlead": Role.TEAM_LEAD,
}


def parse_role(value: Any) -> Role:
  if isinstance(value, Role):
    return value
  key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
  if key in _LEGACY_ALIASES:
    return _LEGACY_ALIASES[key]
  try:
    return Role(key)
  except ValueError:
    raise ValidationError(f"Unknown role: {value!r}", reason="unknown role") from None


def has_wildcard(role: Role) -> bool:
  return Capability.WILDCARD in ROLE_CAPABILITIES[role]


def has_capability(role: Role, capability: Capability) -> bool:
  # delete_user is carved out of the wildcard.
  if capability is Capability.DELETE_USER:
    return role is Role.MANAGING_DIRECTOR
  caps = ROLE_CAPABILITIES[role]
  return Capability.WILDCARD in caps or capability in caps


@dataclass(frozen=True)
class Principal:
  id: str
  role: Role
  department_id: str | None = None
  team_id: str | None = None

  @classmethod
  def from_user(cls, user: Any) -> Principal:
    return cls(
      id=str(user.id),
      role=parse_role(user.role),
      department_id=getattr(user, "department_id", None),
      team_id=getattr(user, "team_id", None),
    )

  def can(self, capability: Capability) -> bool:
    return has_capability(self.role, capability)
