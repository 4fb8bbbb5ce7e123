from __future__ import annotations

import pytest

from tests.conftest import add_task


def _project_body(org, **kw) -> dict:
  body = {
    "name": "Ops tooling",
    "departmentId": org.departments["Operations"],
    "startDate": "2026-01-01",
    "deadline": "2026-06-30",
  }
  body.update(kw)
  return body


@pytest.mark.anyio
async def test_create_project(client, org) -> None:
  res = await client.post("/projects", headers=org.auth("ops_lead"), json=_project_body(org, memberIds=[org.uid("ops")]))
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["progress"] == 0
  assert body["memberIds"] == [org.uid("ops_lead"), org.uid("ops")]
  assert body["createdById"] == org.uid("ops_lead")


@pytest.mark.anyio
async def test_create_project_rules(client, org) -> None:
  res = await client.post("/projects", headers=org.auth("ops"), json=_project_body(org))
  assert res.status_code == 403
  res = await client.post("/projects", headers=org.auth("ops_lead"), json=_project_body(org, deadline="2025-12-31"))
  assert res.status_code == 400
  res = await client.post("/projects", headers=org.auth("md"), json=_project_body(org, departmentId="nope"))
  assert res.status_code == 404


@pytest.mark.anyio
async def test_adjustment_scenarios(client, org, project) -> None:
  for stage in ("Done", "Done", "Todo", "Review"):
    await add_task(org, project, stage=stage)
  res = await client.post(f"/projects/{project.id}/recompute", headers=org.auth("lead"))
  assert res.status_code == 200, res.text
  assert res.json()["progress"] == 50
  assert len((await client.get(f"/projects/{project.id}", headers=org.auth("lead"))).json()["taskIds"]) == 4

  res = await client.patch(f"/projects/{project.id}/adjustment", headers=org.auth("lead"), json={"manualAdjustment": 10})
  assert res.status_code == 200
  assert res.json()["progress"] == 60
  assert res.json()["manualAdjustment"] == 10

  res = await client.patch(f"/projects/{project.id}/adjustment", headers=org.auth("lead"), json={"manualAdjustment": 11})
  assert res.status_code == 400
  res = await client.patch(f"/projects/{project.id}/adjustment", headers=org.auth("dev"), json={"manualAdjustment": 5})
  assert res.status_code == 403


@pytest.mark.anyio
async def test_project_visibility(client, org, project) -> None:
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("dev"))).status_code == 200
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("admin"))).status_code == 200
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("dev2"))).status_code == 403
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("ops_lead"))).status_code == 403
  assert (await client.get("/projects/missing", headers=org.auth("md"))).status_code == 404


@pytest.mark.anyio
async def test_members(client, org, project) -> None:
  res = await client.post(f"/projects/{project.id}/members", headers=org.auth("lead"), json={"userId": org.uid("dev2")})
  assert res.status_code == 200, res.text
  assert org.uid("dev2") in res.json()["memberIds"]
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("dev2"))).status_code == 200

  res = await client.delete(f"/projects/{project.id}/members/{org.uid('dev2')}", headers=org.auth("lead"))
  assert res.status_code == 200
  assert org.uid("dev2") not in res.json()["memberIds"]

  res = await client.delete(f"/projects/{project.id}/members/{org.uid('lead')}", headers=org.auth("md"))
  assert res.status_code == 409
  res = await client.post(f"/projects/{project.id}/members", headers=org.auth("dev"), json={"userId": org.uid("dev2")})
  assert res.status_code == 403


@pytest.mark.anyio
async def test_list_projects(client, org, project) -> None:
  res = await client.get("/projects", headers=org.auth("dev"))
  assert res.status_code == 200, res.text
  assert [p["id"] for p in res.json()] == [project.id]
  res = await client.get("/projects", headers=org.auth("sales"))
  assert res.json() == []
  res = await client.get("/projects", headers=org.auth("lead"), params={"scope": "my"})
  assert [p["id"] for p in res.json()] == [project.id]
  res = await client.get("/projects", headers=org.auth("md"), params={"scope": "nope"})
  assert res.status_code == 400


@pytest.mark.anyio
async def test_update_project(client, org, project) -> None:
  res = await client.patch(f"/projects/{project.id}", headers=org.auth("lead"), json={"status": "active", "priority": "high"})
  assert res.status_code == 200, res.text
  assert (res.json()["status"], res.json()["priority"]) == ("active", "high")
  assert (await client.get(f"/projects/{project.id}", headers=org.auth("dev"))).json()["status"] == "active"

  res = await client.patch(f"/projects/{project.id}", headers=org.auth("lead"), json={"status": "archived"})
  assert res.status_code == 422
  res = await client.patch(f"/projects/{project.id}", headers=org.auth("dev"), json={"status": "completed"})
  assert res.status_code == 403
  res = await client.patch(f"/projects/{project.id}", headers=org.auth("lead"), json={"deadline": "2000-01-01"})
  assert res.status_code == 400
