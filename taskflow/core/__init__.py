from taskflow.core.errors import (
  AuthorizationError,
  BusinessRuleError,
  NotFoundError,
  PersistenceError,
  TaskflowError,
  ValidationError,
)
from taskflow.core.lifecycle import KanbanStage, TaskStatus
from taskflow.core.roles import Capability, Principal, Role

__all__ = [
  "AuthorizationError",
  "BusinessRuleError",
  "Capability",
  "KanbanStage",
  "NotFoundError",
  "PersistenceError",
  "Principal",
  "Role",
  "TaskStatus",
  "TaskflowError",
  "ValidationError",
]
