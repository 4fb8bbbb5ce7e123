from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select

from taskflow.db import SessionLocal
from taskflow.models import ApiToken, Department, Team, User
from taskflow.security import api_token_hash, api_token_new, token_hint

# (email, name, role, department, team)
_DEMO_USERS = [
  ("md@taskflow.local", "Managing Director", "managing_director", "Management", None),
  ("admin@taskflow.local", "IT Admin", "it_admin", "IT", None),
  ("lead@taskflow.local", "Engineering Lead", "team_lead", "Engineering", "Platform"),
  ("dev@taskflow.local", "Engineer", "employee", "Engineering", "Platform"),
  ("ops@taskflow.local", "Operations", "employee", "Operations", None),
]


async def _department(db, name: str) -> Department:
  res = await db.execute(select(Department).where(Department.name == name))
  d = res.scalar_one_or_none()
  if not d:
    d = Department(name=name)
    db.add(d)
    await db.flush()
  return d


async def _team(db, name: str, department: Department) -> Team:
  res = await db.execute(select(Team).where(Team.name == name, Team.department_id == department.id))
  t = res.scalar_one_or_none()
  if not t:
    t = Team(name=name, department_id=department.id)
    db.add(t)
    await db.flush()
  return t


async def seed() -> None:
  async with SessionLocal() as db:
    boot_lines: list[str] = []
    for email, name, role, dept_name, team_name in _DEMO_USERS:
      dept = await _department(db, dept_name)
      team = await _team(db, team_name, dept) if team_name else None
      res = await db.execute(select(User).where(User.email == email))
      if res.scalar_one_or_none():
        continue
      u = User(email=email, name=name, role=role, department_id=dept.id, team_id=(team.id if team else None))
      db.add(u)
      await db.flush()
      raw = api_token_new()
      db.add(ApiToken(user_id=u.id, name="seed", token_hash=api_token_hash(raw), token_hint=token_hint(raw)))
      boot_lines.append(f"{email} ({role})={raw}")
    await db.commit()

  if boot_lines:
    out_dir = Path(os.getenv("BOOTSTRAP_CREDENTIALS_DIR", "data"))
    out_dir.mkdir(parents=True, exist_ok=True)
    out_file = out_dir / "bootstrap_tokens.txt"
    stamp = datetime.now(timezone.utc).isoformat()
    out_file.write_text(f"[{stamp}]\n" + "\n".join(boot_lines) + "\n", encoding="utf-8")
    print("Taskflow seed tokens created:")
    for ln in boot_lines:
      print(f"  {ln}")
    print(f"Saved to {out_file}")


def main() -> None:
  asyncio.run(seed())


if __name__ == "__main__":
  main()
