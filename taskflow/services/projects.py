from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from taskflow.core.access import Decision, can_access_project, can_modify_project, require
from taskflow.core.errors import BusinessRuleError, NotFoundError, ValidationError
from taskflow.core.progress import recompute_progress, validate_adjustment
from taskflow.core.relations import is_creator, is_project_member, is_team_match
from taskflow.core.roles import Capability, Principal, has_wildcard
from taskflow.models import Project, new_id
from taskflow.notifications.events import TaskNotifier
from taskflow.repository import SqlRepository
from taskflow.schemas import ProjectCreateIn

logger = structlog.get_logger()

PROJECT_STATUSES = frozenset({"planning", "active", "completed", "on_hold"})
PROJECT_PRIORITIES = frozenset({"low", "medium", "high", "urgent"})
UPDATABLE_FIELDS = frozenset({"name", "description", "status", "priority", "start_date", "deadline"})
LIST_SCOPES = ("all", "my", "team")


def _as_utc(dt: datetime) -> datetime:
  return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class ProjectService:
  def __init__(self, repo: SqlRepository, notifier: TaskNotifier) -> None:
    self.repo = repo
    self.notifier = notifier

  async def _load(self, project_id: str) -> Project:
    project = await self.repo.find_project_by_id(project_id)
    if project is None:
      raise NotFoundError("Project not found", reason="project")
    return project

  async def _recompute(self, project: Project, actor: Principal) -> tuple[int, int]:
    old, new = await recompute_progress(self.repo, project)
    if old != new:
      try:
        await self.notifier.on_project_progress_changed(project, old, new, actor=actor)
      except Exception:
        logger.exception("notification_failed", hook="on_project_progress_changed")
    return old, new

  async def create_project(self, payload: ProjectCreateIn, actor: Principal) -> Project:
    allowed = actor.can(Capability.CREATE_PROJECT)
    require(Decision(allowed, None if allowed else "missing capability"), action="create projects", user=actor)
    if payload.deadline <= payload.startDate:
      raise ValidationError("Deadline must be after start date", reason="deadline before start")
    if await self.repo.find_department_by_id(payload.departmentId) is None:
      raise NotFoundError("Department not found", reason="department")
    if payload.teamId:
      team = await self.repo.find_team_by_id(payload.teamId)
      if team is None:
        raise NotFoundError("Team not found", reason="team")
      if team.department_id != payload.departmentId:
        raise ValidationError("Team does not belong to the project department", reason="team department mismatch")

    member_ids: list[str] = []
    for uid in [actor.id, *payload.memberIds]:
      if uid in member_ids:
        continue
      if uid != actor.id and await self.repo.find_user_by_id(uid) is None:
        raise NotFoundError("Member user not found", reason="member")
      member_ids.append(uid)

    project = Project(
      id=new_id(),
      name=payload.name.strip(),
      description=payload.description or "",
      department_id=payload.departmentId,
      team_id=payload.teamId,
      created_by_id=actor.id,
      priority=payload.priority,
      start_date=payload.startDate,
      deadline=payload.deadline,
      member_ids=member_ids,
      progress=0,
      manual_adjustment=0,
    )
    self.repo.add_audit(
      event_type="project.created",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=actor.id,
      payload={"name": project.name, "departmentId": project.department_id, "teamId": project.team_id},
    )
    await self.repo.save_project(project)
    logger.info("project_created", project_id=project.id, actor_id=actor.id)
    return project

  async def get_project(self, project_id: str, actor: Principal) -> tuple[Project, list[str]]:
    project = await self._load(project_id)
    require(can_access_project(actor, project), action="access this project", user=actor, entity_id=project.id)
    tasks = await self.repo.find_tasks_by_project(project.id)
    return project, [t.id for t in tasks]

  async def list_projects(self, actor: Principal, *, scope: str = "all") -> list[Project]:
    """Projects visible to ``actor``, newest first.

    ``all`` is everything the actor may open, ``my`` is what they created
    or belong to, ``team`` is their team's (or department's) projects.
    Wildcard roles see every project under ``all`` and ``team``.
    """
    if scope not in LIST_SCOPES:
      raise ValidationError(f"Unknown project scope: {scope!r}", reason="unknown scope")
    projects = await self.repo.find_projects()
    if scope == "my":
      return [p for p in projects if is_creator(actor, p) or is_project_member(actor, p)]
    if has_wildcard(actor.role):
      return list(projects)
    if scope == "team":
      return [p for p in projects if is_team_match(actor, p)]
    return [p for p in projects if can_access_project(actor, p)]

  async def update_project(self, project_id: str, patch: dict[str, Any], actor: Principal) -> Project:
    unknown = sorted(set(patch) - UPDATABLE_FIELDS)
    if unknown:
      raise ValidationError(f"Unknown project fields: {', '.join(unknown)}", reason="unknown field")
    cleared = sorted(k for k, v in patch.items() if v is None)
    if cleared:
      raise ValidationError(f"{', '.join(cleared)} cannot be cleared", reason="missing required field")
    if "status" in patch and patch["status"] not in PROJECT_STATUSES:
      raise ValidationError(f"Invalid project status: {patch['status']!r}", reason="unknown status")
    if "priority" in patch and patch["priority"] not in PROJECT_PRIORITIES:
      raise ValidationError(f"Invalid project priority: {patch['priority']!r}", reason="unknown priority")
    if "name" in patch:
      name = patch["name"].strip()
      if not name:
        raise ValidationError("Project name cannot be blank", reason="blank name")
      patch = {**patch, "name": name}

    project = await self._load(project_id)
    require(can_modify_project(actor, project), action="modify this project", user=actor, entity_id=project.id)
    start = _as_utc(patch.get("start_date", project.start_date))
    deadline = _as_utc(patch.get("deadline", project.deadline))
    if deadline <= start:
      raise ValidationError("Deadline must be after start date", reason="deadline before start")

    changed: dict[str, Any] = {}
    for key, val in patch.items():
      if getattr(project, key) != val:
        setattr(project, key, val)
        changed[key] = val
    if not changed:
      return project

    self.repo.add_audit(
      event_type="project.updated",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=actor.id,
      payload={"changed": sorted(changed), "fields": changed},
    )
    await self.repo.save_project(project)
    logger.info("project_updated", project_id=project.id, actor_id=actor.id, changed=sorted(changed))
    return project

  async def set_manual_adjustment(self, project_id: str, value: int, actor: Principal) -> Project:
    adjustment = validate_adjustment(value)
    project = await self._load(project_id)
    require(can_modify_project(actor, project), action="adjust this project", user=actor, entity_id=project.id)
    old_adjustment = project.manual_adjustment
    project.manual_adjustment = adjustment
    self.repo.add_audit(
      event_type="project.adjusted",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=actor.id,
      payload={"from": old_adjustment, "to": adjustment},
    )
    await self.repo.save_project(project)
    await self._recompute(project, actor)
    return project

  async def recompute(self, project_id: str, actor: Principal) -> Project:
    project = await self._load(project_id)
    require(can_modify_project(actor, project), action="recompute this project", user=actor, entity_id=project.id)
    await self._recompute(project, actor)
    return project

  async def add_member(self, project_id: str, user_id: str, actor: Principal) -> Project:
    project = await self._load(project_id)
    require(can_modify_project(actor, project), action="manage project members", user=actor, entity_id=project.id)
    user = await self.repo.find_user_by_id(user_id)
    if user is None or not user.active:
      raise NotFoundError("User not found", reason="member")
    if user_id in (project.member_ids or []):
      return project
    # Reassigned so the JSON column is flagged dirty.
    project.member_ids = [*(project.member_ids or []), user_id]
    self.repo.add_audit(
      event_type="project.member_added",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=actor.id,
      payload={"userId": user_id},
    )
    await self.repo.save_project(project)
    logger.info("project_member_added", project_id=project.id, user_id=user_id, actor_id=actor.id)
    return project

  async def remove_member(self, project_id: str, user_id: str, actor: Principal) -> Project:
    project = await self._load(project_id)
    require(can_modify_project(actor, project), action="manage project members", user=actor, entity_id=project.id)
    if user_id == project.created_by_id:
      raise BusinessRuleError("The project creator cannot be removed", reason="creator")
    if user_id not in (project.member_ids or []):
      raise NotFoundError("User is not a project member", reason="member")
    project.member_ids = [m for m in project.member_ids if m != user_id]
    self.repo.add_audit(
      event_type="project.member_removed",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=actor.id,
      payload={"userId": user_id},
    )
    await self.repo.save_project(project)
    logger.info("project_member_removed", project_id=project.id, user_id=user_id, actor_id=actor.id)
    return project
