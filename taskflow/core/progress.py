from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from taskflow.core.errors import ValidationError
from taskflow.core.lifecycle import KanbanStage

if TYPE_CHECKING:
  from taskflow.repository import SqlRepository

logger = structlog.get_logger()

MIN_ADJUSTMENT = -10
MAX_ADJUSTMENT = 10


def validate_adjustment(value: Any) -> int:
  if not isinstance(value, int) or isinstance(value, bool) or not (MIN_ADJUSTMENT <= value <= MAX_ADJUSTMENT):
    raise ValidationError(
      f"Manual adjustment must be an integer between {MIN_ADJUSTMENT} and {MAX_ADJUSTMENT}",
      reason="adjustment out of range",
    )
  return value


def compute_progress(total: int, done: int, manual_adjustment: int = 0) -> int:
  if total <= 0:
    return 0
  # Round half up, so 12.5% becomes 13%.
  auto = (200 * done + total) // (2 * total)
  return max(0, min(100, auto + manual_adjustment))


async def recompute_progress(repo: SqlRepository, project: Any) -> tuple[int, int]:
  """Recompute a project's completion from its tasks and save it.

  Idempotent: running it again over the same task population yields the
  same value and skips the write. Returns ``(old, new)``.
  """
  tasks = await repo.find_tasks_by_project(project.id)
  done = sum(1 for t in tasks if t.kanban_stage == KanbanStage.DONE.value)
  old = int(project.progress or 0)
  new = compute_progress(len(tasks), done, int(project.manual_adjustment or 0))
  if new != old:
    project.progress = new
    await repo.save_project(project)
  logger.info("project_progress_recomputed", project_id=project.id, total=len(tasks), done=done, old=old, new=new)
  return old, new
