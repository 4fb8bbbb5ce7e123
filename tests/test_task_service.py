from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from taskflow.core.errors import AuthorizationError, BusinessRuleError, NotFoundError, PersistenceError, ValidationError
from taskflow.core.lifecycle import KanbanStage
from taskflow.db import SessionLocal
from taskflow.models import AuditEvent, InAppNotification, Project, Task, TaskLog
from taskflow.notifications.events import InAppNotifier
from taskflow.repository import SqlRepository
from taskflow.schemas import TaskCreateIn
from taskflow.services.projects import ProjectService
from taskflow.services.tasks import TaskService
from tests.conftest import add_task


class _Recorder:
  def __init__(self) -> None:
    self.calls: list[tuple] = []

  async def on_task_created(self, task, *, actor) -> None:
    self.calls.append(("created", task.id))

  async def on_stage_moved(self, task, old_stage, new_stage, *, actor) -> None:
    self.calls.append(("moved", old_stage.value, new_stage.value))

  async def on_approval_requested(self, task, *, actor) -> None:
    self.calls.append(("approval", task.id))

  async def on_project_progress_changed(self, project, old, new, *, actor) -> None:
    self.calls.append(("progress", old, new))


class _Broken(_Recorder):
  async def on_stage_moved(self, task, old_stage, new_stage, *, actor) -> None:
    raise RuntimeError("mail server down")


async def _reload(model, id_: str):
  async with SessionLocal() as db:
    res = await db.execute(select(model).where(model.id == id_))
    return res.scalar_one_or_none()


def _create_in(org, **kw) -> TaskCreateIn:
  data = {
    "title": "Write docs",
    "assigneeId": org.uid("dev"),
    "requestingDepartmentId": org.departments["Engineering"],
    "executingDepartmentId": org.departments["Operations"],
  }
  data.update(kw)
  return TaskCreateIn(**data)


@pytest.mark.anyio
async def test_scenario_a_and_b_progress_from_done_tasks(org, project) -> None:
  for stage in ("Done", "Done", "Todo", "Review"):
    await add_task(org, project, stage=stage)
  async with SessionLocal() as db:
    svc = ProjectService(SqlRepository(db), _Recorder())
    p = await svc.recompute(project.id, org.principal("lead"))
    assert p.progress == 50
    p = await svc.set_manual_adjustment(project.id, 10, org.principal("lead"))
    assert p.progress == 60


@pytest.mark.anyio
async def test_scenario_c_employee_rejecting_in_progress_task(org, project) -> None:
  task = await add_task(org, project, stage="In Progress")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(BusinessRuleError):
      await svc.reject_task(task.id, "not good", org.principal("dev"))
  stored = await _reload(Task, task.id)
  assert stored.kanban_stage == "In Progress"
  assert stored.remark is None


@pytest.mark.anyio
async def test_scenario_d_lead_approves_review(org, project) -> None:
  task = await add_task(org, project, stage="Review")
  await add_task(org, project, stage="Todo")
  notifier = _Recorder()
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), notifier)
    t, old, new = await svc.move_task_stage(task.id, "Done", org.principal("lead"))
  assert (old, new) == (KanbanStage.REVIEW, KanbanStage.DONE)
  stored = await _reload(Task, task.id)
  assert stored.kanban_stage == "Done"
  assert stored.status == "Done"
  assert stored.progress == 100
  assert stored.completed_date is not None
  assert (await _reload(Project, project.id)).progress == 50
  assert notifier.calls == [("progress", 0, 50), ("moved", "Review", "Done")]


@pytest.mark.anyio
async def test_approval_gate_leaves_task_in_review(org, project) -> None:
  task = await add_task(org, project, stage="Review", assignee="dev")
  notifier = _Recorder()
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), notifier)
    with pytest.raises(AuthorizationError):
      await svc.move_task_stage(task.id, "Done", org.principal("dev"))
  stored = await _reload(Task, task.id)
  assert stored.kanban_stage == "Review"
  assert stored.completed_date is None
  assert notifier.calls == []


@pytest.mark.anyio
async def test_moving_out_of_done_recomputes(org, project) -> None:
  done = await add_task(org, project, stage="Done")
  await add_task(org, project, stage="Todo")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    await svc.move_task_stage(done.id, "Done", org.principal("lead"))
    assert (await _reload(Project, project.id)).progress == 50
    await svc.move_task_stage(done.id, "In Progress", org.principal("lead"))
  assert (await _reload(Project, project.id)).progress == 0


@pytest.mark.anyio
async def test_assignee_moves_own_task_twice_start_date_once(org, project) -> None:
  task = await add_task(org, project, stage="Todo", assignee="dev")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    t, _, _ = await svc.move_task_stage(task.id, "In Progress", org.principal("dev"))
    first = t.start_date
    t, _, _ = await svc.move_task_stage(task.id, "In Progress", org.principal("dev"))
    assert t.start_date == first


@pytest.mark.anyio
async def test_unknown_stage_rejected_before_lookup(org) -> None:
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(ValidationError):
      await svc.move_task_stage("missing-id", "Shipped", org.principal("lead"))
    with pytest.raises(NotFoundError):
      await svc.move_task_stage("missing-id", "Todo", org.principal("lead"))


@pytest.mark.anyio
async def test_unrelated_employee_cannot_move(org, project) -> None:
  task = await add_task(org, project, stage="Todo", assignee="dev")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(AuthorizationError) as exc:
      await svc.move_task_stage(task.id, "In Progress", org.principal("sales"))
  assert exc.value.reason == "not modifier"
  assert (await _reload(Task, task.id)).kanban_stage == "Todo"


@pytest.mark.anyio
async def test_create_task_recomputes_and_notifies(org, project) -> None:
  await add_task(org, project, stage="Done")
  notifier = _Recorder()
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), notifier)
    t = await svc.create_task(project.id, _create_in(org, kanbanStage="Review"), org.principal("lead"))
  assert t.status == "Review"
  assert (await _reload(Project, project.id)).progress == 50
  assert notifier.calls == [("progress", 0, 50), ("created", t.id), ("approval", t.id)]


@pytest.mark.anyio
async def test_create_task_rules(org, project) -> None:
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(AuthorizationError):
      await svc.create_task(project.id, _create_in(org), org.principal("dev"))
    with pytest.raises(BusinessRuleError):
      await svc.create_task(project.id, _create_in(org, assigneeId=org.uid("ops")), org.principal("lead"))
    with pytest.raises(NotFoundError):
      await svc.create_task(project.id, _create_in(org, executingDepartmentId="nope"), org.principal("lead"))
    with pytest.raises(ValidationError):
      await svc.create_task(project.id, _create_in(org, kanbanStage="Shipped"), org.principal("lead"))
    with pytest.raises(NotFoundError):
      await svc.create_task("nope", _create_in(org), org.principal("lead"))
    # Team leads may assign outside the project team.
    t = await svc.create_task(project.id, _create_in(org, assigneeId=org.uid("ops_lead")), org.principal("lead"))
    assert t.kanban_stage == "Backlog"
    assert t.status == "Pending"


@pytest.mark.anyio
async def test_update_task_rejects_lifecycle_fields(org, project) -> None:
  task = await add_task(org, project, stage="Todo")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    for field in ("kanban_stage", "status", "progress"):
      with pytest.raises(ValidationError):
        await svc.update_task(task.id, {field: "Done"}, org.principal("lead"))
    with pytest.raises(AuthorizationError):
      await svc.update_task(task.id, {"title": "x"}, org.principal("dev"))
    t = await svc.update_task(task.id, {"title": "Renamed", "priority": "High"}, org.principal("lead"))
    assert (t.title, t.priority, t.kanban_stage) == ("Renamed", "High", "Todo")
    res = await db.execute(select(AuditEvent).where(AuditEvent.event_type == "task.updated"))
    ev = res.scalar_one()
    assert ev.payload["changed"] == ["priority", "title"]


@pytest.mark.anyio
async def test_reject_records_reason(org, project) -> None:
  task = await add_task(org, project, stage="Review")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    t = await svc.reject_task(task.id, "needs tests", org.principal("lead"))
  stored = await _reload(Task, t.id)
  assert (stored.kanban_stage, stored.status, stored.remark) == ("In Progress", "In Progress", "Rejected: needs tests")


@pytest.mark.anyio
async def test_approve_requires_review(org, project) -> None:
  task = await add_task(org, project, stage="Todo")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(BusinessRuleError):
      await svc.approve_task(task.id, org.principal("lead"))


@pytest.mark.anyio
async def test_log_progress_appends_log(org, project) -> None:
  task = await add_task(org, project, stage="In Progress", assignee="dev")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    t, entry = await svc.log_progress(task.id, 40, org.principal("dev"), remark="halfway-ish", hours_worked=3.5)
    assert t.progress == 40
    with pytest.raises(ValidationError):
      await svc.log_progress(task.id, 140, org.principal("dev"))
    with pytest.raises(AuthorizationError):
      await svc.log_progress(task.id, 50, org.principal("sales"))
    logs = await svc.list_task_logs(task.id, org.principal("dev"))
  assert [(x.progress, x.remark, x.hours_worked) for x in logs] == [(40, "halfway-ish", 3.5)]


@pytest.mark.anyio
async def test_delete_task_recomputes_project(org, project) -> None:
  done = await add_task(org, project, stage="Done")
  todo = await add_task(org, project, stage="Todo")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    await svc.log_progress(todo.id, 10, org.principal("lead"))
    with pytest.raises(AuthorizationError):
      await svc.delete_task(todo.id, org.principal("dev"))
    await svc.delete_task(todo.id, org.principal("lead"))
  assert await _reload(Task, todo.id) is None
  assert (await _reload(Project, project.id)).progress == 100
  async with SessionLocal() as db:
    res = await db.execute(select(TaskLog).where(TaskLog.task_id == todo.id))
    assert res.scalars().all() == []
  assert (await _reload(Task, done.id)) is not None


@pytest.mark.anyio
async def test_notifier_failure_does_not_undo_move(org, project) -> None:
  task = await add_task(org, project, stage="Todo", assignee="dev")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Broken())
    t, _, new = await svc.move_task_stage(task.id, "In Progress", org.principal("lead"))
  assert new is KanbanStage.IN_PROGRESS
  assert (await _reload(Task, task.id)).kanban_stage == "In Progress"


@pytest.mark.anyio
async def test_inapp_notifier_skips_actor_and_notifies_leads(org, project) -> None:
  task = await add_task(org, project, stage="In Progress", assignee="dev", creator="lead", executing=org.departments["Operations"])
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), InAppNotifier(SessionLocal, enabled=True))
    await svc.move_task_stage(task.id, "Review", org.principal("dev"))
  async with SessionLocal() as db:
    res = await db.execute(select(InAppNotification))
    rows = res.scalars().all()
  by_user = {(n.user_id, n.event_type) for n in rows}
  assert (org.uid("lead"), "task.moved") in by_user
  assert (org.uid("lead"), "task.approval_requested") in by_user
  assert (org.uid("ops_lead"), "task.approval_requested") in by_user
  assert all(n.user_id != org.uid("dev") for n in rows)
  assert {n.taxonomy for n in rows if n.event_type == "task.approval_requested"} == {"action_required"}


@pytest.mark.anyio
async def test_reopened_task_returns_to_full_progress_when_done_again(org, project) -> None:
  task = await add_task(org, project, stage="Done", assignee="dev")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    await svc.move_task_stage(task.id, "In Progress", org.principal("lead"))
    await svc.log_progress(task.id, 40, org.principal("dev"))
    await svc.move_task_stage(task.id, "Review", org.principal("dev"))
    await svc.approve_task(task.id, org.principal("lead"))
  stored = await _reload(Task, task.id)
  assert (stored.kanban_stage, stored.status, stored.progress) == ("Done", "Done", 100)


@pytest.mark.anyio
async def test_failed_commit_leaves_task_unchanged(org, project, monkeypatch) -> None:
  task = await add_task(org, project, stage="Todo", assignee="dev")
  notifier = _Recorder()

  async def _fail() -> None:
    raise SQLAlchemyError("connection lost")

  async with SessionLocal() as db:
    monkeypatch.setattr(db, "commit", _fail)
    svc = TaskService(SqlRepository(db), notifier)
    with pytest.raises(PersistenceError):
      await svc.move_task_stage(task.id, "In Progress", org.principal("dev"))
  stored = await _reload(Task, task.id)
  assert (stored.kanban_stage, stored.status, stored.start_date, stored.progress) == ("Todo", "Pending", None, 0)
  assert notifier.calls == []
  async with SessionLocal() as db:
    res = await db.execute(select(AuditEvent).where(AuditEvent.task_id == task.id))
    assert res.scalars().all() == []


@pytest.mark.anyio
async def test_update_task_strips_title(org, project) -> None:
  task = await add_task(org, project, stage="Todo", title="Original")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    with pytest.raises(ValidationError):
      await svc.update_task(task.id, {"title": "   "}, org.principal("lead"))
    t = await svc.update_task(task.id, {"title": "  Trimmed  "}, org.principal("lead"))
    assert t.title == "Trimmed"
  assert (await _reload(Task, task.id)).title == "Trimmed"


@pytest.mark.anyio
async def test_list_tasks_is_scoped_by_role(org, project) -> None:
  mine = await add_task(org, project, stage="Todo", assignee="dev")
  other = await add_task(org, project, stage="Review", assignee="dev2")
  lead_own = await add_task(org, project, stage="Todo", assignee="lead")
  async with SessionLocal() as db:
    svc = TaskService(SqlRepository(db), _Recorder())
    assert {t.id for t in await svc.list_tasks(org.principal("dev"))} == {mine.id}
    assert {t.id for t in await svc.list_tasks(org.principal("lead"))} == {mine.id, other.id, lead_own.id}
    assert {t.id for t in await svc.list_tasks(org.principal("md"))} == {mine.id, other.id, lead_own.id}
    assert await svc.list_tasks(org.principal("ops_lead")) == []
    todo = await svc.list_tasks(org.principal("lead"), stage="Todo")
    assert {t.id for t in todo} == {mine.id, lead_own.id}
    with pytest.raises(ValidationError):
      await svc.list_tasks(org.principal("lead"), stage="Shipped")
    with pytest.raises(AuthorizationError):
      await svc.list_tasks(org.principal("sales"), project_id=project.id)
    with pytest.raises(NotFoundError):
      await svc.list_tasks(org.principal("md"), project_id="missing")
