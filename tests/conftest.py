from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Must be set before taskflow.config is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./taskflow_test.db")

from taskflow.config import settings
from taskflow.core.roles import Principal
from taskflow.db import SessionLocal, create_schema, drop_schema, engine
from taskflow.main import app
from taskflow.models import ApiToken, Department, Project, Task, Team, User
from taskflow.security import api_token_hash, token_hint


@dataclass
class Org:
  departments: dict[str, str] = field(default_factory=dict)
  teams: dict[str, str] = field(default_factory=dict)
  users: dict[str, User] = field(default_factory=dict)
  tokens: dict[str, str] = field(default_factory=dict)

  def uid(self, key: str) -> str:
    return self.users[key].id

  def principal(self, key: str) -> Principal:
    return Principal.from_user(self.users[key])

  def auth(self, key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {self.tokens[key]}"}


# key -> (role, department, team)
_USERS = {
  "md": ("managing_director", "Management", None),
  "admin": ("it_admin", "IT", None),
  "lead": ("team_lead", "Engineering", "Platform"),
  "dev": ("employee", "Engineering", "Platform"),
  "dev2": ("employee", "Engineering", None),
  "ops_lead": ("team_lead", "Operations", None),
  "ops": ("employee", "Operations", None),
  "sales": ("employee", "Sales", None),
}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def clean_db() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskflow_test)."
    )
  await drop_schema()
  await create_schema()
  yield
  await engine.dispose()


@pytest.fixture
async def org(clean_db) -> Org:
  o = Org()
  async with SessionLocal() as db:
    for name in ("Management", "IT", "Engineering", "Operations", "Sales"):
      d = Department(name=name)
      db.add(d)
      await db.flush()
      o.departments[name] = d.id
    t = Team(name="Platform", department_id=o.departments["Engineering"])
    db.add(t)
    await db.flush()
    o.teams["Platform"] = t.id

    for key, (role, dept, team) in _USERS.items():
      u = User(
        email=f"{key}@taskflow.local",
        name=key,
        role=role,
        department_id=o.departments[dept],
        team_id=(o.teams[team] if team else None),
      )
      db.add(u)
      await db.flush()
      raw = f"tfpat_test_{key}"
      db.add(ApiToken(user_id=u.id, name="test", token_hash=api_token_hash(raw), token_hint=token_hint(raw)))
      o.users[key] = u
      o.tokens[key] = raw
    await db.commit()
  return o


@pytest.fixture
async def project(org: Org) -> Project:
  # Engineering project owned by the lead, with dev as a member.
  now = datetime.now(timezone.utc)
  p = Project(
    name="Platform Revamp",
    description="",
    department_id=org.departments["Engineering"],
    team_id=org.teams["Platform"],
    created_by_id=org.uid("lead"),
    start_date=now,
    deadline=now + timedelta(days=30),
    member_ids=[org.uid("lead"), org.uid("dev")],
  )
  async with SessionLocal() as db:
    db.add(p)
    await db.commit()
  return p


async def add_task(org: Org, project: Project, *, stage: str = "Backlog", assignee: str = "dev", creator: str = "lead", **kw) -> Task:
  t = Task(
    project_id=project.id,
    title=kw.pop("title", f"task in {stage}"),
    assignee_id=org.uid(assignee),
    requesting_department_id=kw.pop("requesting", org.departments["Engineering"]),
    executing_department_id=kw.pop("executing", org.departments["Engineering"]),
    created_by_id=org.uid(creator),
    kanban_stage=stage,
    status={"Backlog": "Pending", "Todo": "Pending", "In Progress": "In Progress", "Review": "Review", "Done": "Done"}[stage],
    progress=(100 if stage == "Done" else 0),
    **kw,
  )
  async with SessionLocal() as db:
    db.add(t)
    await db.commit()
  return t


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c
