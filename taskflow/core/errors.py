"""Typed failures raised by the task lifecycle and authorization core.

Every failure that crosses the service boundary is one of these; the HTTP
layer turns them into responses with a single exception handler.
"""

from __future__ import annotations


class TaskflowError(Exception):
  status_code = 400

  def __init__(self, message: str, *, reason: str | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.reason = reason

  def as_detail(self) -> dict[str, str | None]:
    return {"error": type(self).__name__, "message": self.message, "reason": self.reason}


class ValidationError(TaskflowError):
  status_code = 400


class AuthorizationError(TaskflowError):
  status_code = 403


class NotFoundError(TaskflowError):
  status_code = 404


class BusinessRuleError(TaskflowError):
  status_code = 409


class PersistenceError(TaskflowError):
  status_code = 503
