from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskflow.config import settings
from taskflow.core.errors import TaskflowError
from taskflow.logs import configure_logging
from taskflow.middleware import LoggingMiddleware, RequestIDMiddleware
from taskflow.routers.audit import router as audit_router
from taskflow.routers.kanban import router as kanban_router
from taskflow.routers.notifications import router as notifications_router
from taskflow.routers.projects import router as projects_router
from taskflow.routers.tasks import router as tasks_router

configure_logging()
logger = structlog.get_logger()

app = FastAPI(
  title="Taskflow API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(TaskflowError)
async def _taskflow_error_handler(request: Request, exc: TaskflowError) -> JSONResponse:
  logger.info("request_rejected", error=type(exc).__name__, reason=exc.reason, status_code=exc.status_code)
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.as_detail()})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())
# Added last so it runs first and the logger sees the request id.
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(kanban_router)
app.include_router(notifications_router)
app.include_router(audit_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  if settings.is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  logger.info("api_started", version=settings.app_version, build_sha=settings.build_sha)
