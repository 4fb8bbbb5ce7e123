from __future__ import annotations

import pytest

from taskflow.core.errors import ValidationError
from taskflow.core.roles import Capability, Principal, Role, has_capability, has_wildcard, parse_role


@pytest.mark.parametrize(
  "raw,expected",
  [
    ("managing_director", Role.MANAGING_DIRECTOR),
    ("MANAGING_DIRECTOR", Role.MANAGING_DIRECTOR),
    ("MD", Role.MANAGING_DIRECTOR),
    ("ADMIN", Role.IT_ADMIN),
    ("it-admin", Role.IT_ADMIN),
    ("TEAM_LEAD", Role.TEAM_LEAD),
    ("TeamLead", Role.TEAM_LEAD),
    ("team lead", Role.TEAM_LEAD),
    (" employee ", Role.EMPLOYEE),
  ],
)
def test_parse_role_accepts_every_spelling(raw: str, expected: Role) -> None:
  assert parse_role(raw) is expected


@pytest.mark.parametrize("raw", ["", None, "superuser", "lead"])
def test_parse_role_rejects_unknown(raw) -> None:
  with pytest.raises(ValidationError) as exc:
    parse_role(raw)
  assert exc.value.reason == "unknown role"


def test_wildcard_roles() -> None:
  assert has_wildcard(Role.MANAGING_DIRECTOR)
  assert has_wildcard(Role.IT_ADMIN)
  assert not has_wildcard(Role.TEAM_LEAD)
  assert not has_wildcard(Role.EMPLOYEE)


def test_delete_user_is_carved_out_of_wildcard() -> None:
  assert has_capability(Role.MANAGING_DIRECTOR, Capability.DELETE_USER)
  assert not has_capability(Role.IT_ADMIN, Capability.DELETE_USER)
  assert not has_capability(Role.TEAM_LEAD, Capability.DELETE_USER)


def test_team_lead_and_employee_capabilities() -> None:
  for cap in (
    Capability.VIEW_TEAM_DATA,
    Capability.CREATE_PROJECT,
    Capability.CREATE_USER,
    Capability.ASSIGN_TASKS,
    Capability.MANAGE_TEAM_MEMBERS,
    Capability.VIEW_OWN_TASKS,
    Capability.UPDATE_TASK_STATUS,
    Capability.VIEW_ASSIGNED_PROJECTS,
  ):
    assert has_capability(Role.TEAM_LEAD, cap)
  assert has_capability(Role.EMPLOYEE, Capability.UPDATE_TASK_STATUS)
  assert has_capability(Role.EMPLOYEE, Capability.VIEW_OWN_TASKS)
  assert has_capability(Role.EMPLOYEE, Capability.VIEW_ASSIGNED_PROJECTS)
  assert not has_capability(Role.EMPLOYEE, Capability.CREATE_PROJECT)
  assert not has_capability(Role.EMPLOYEE, Capability.VIEW_TEAM_DATA)


def test_it_admin_passes_everything_but_delete_user() -> None:
  for cap in Capability:
    if cap is Capability.DELETE_USER:
      continue
    assert has_capability(Role.IT_ADMIN, cap)


def test_principal_from_legacy_user_row() -> None:
  class Row:
    id = "u1"
    role = "TEAMLEAD"
    department_id = "d1"
    team_id = None

  p = Principal.from_user(Row())
  assert p == Principal(id="u1", role=Role.TEAM_LEAD, department_id="d1", team_id=None)
  assert p.can(Capability.ASSIGN_TASKS)
