"""structlog setup shared by the API process and scripts."""

from __future__ import annotations

import logging
import sys

import structlog

from taskflow.config import settings


def configure_logging(*, level: str | None = None, json: bool | None = None) -> None:
  lvl = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
  as_json = settings.log_json if json is None else json

  logging.basicConfig(format="%(message)s", stream=sys.stdout, level=lvl)

  renderer = structlog.processors.JSONRenderer() if as_json else structlog.dev.ConsoleRenderer(colors=False)
  structlog.configure(
    processors=[
      structlog.contextvars.merge_contextvars,
      structlog.processors.add_log_level,
      structlog.processors.TimeStamper(fmt="iso", utc=True),
      structlog.processors.StackInfoRenderer(),
      structlog.processors.format_exc_info,
      renderer,
    ],
    wrapper_class=structlog.make_filtering_bound_logger(lvl),
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
  )
