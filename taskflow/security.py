from __future__ import annotations

import hashlib
import hmac
import secrets

from taskflow.config import settings

API_TOKEN_PREFIX = "tfpat_"


def api_token_hash(token: str) -> str:
  # Keyed hash so DB leaks don't allow offline token matching.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (token or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def api_token_new() -> str:
  return API_TOKEN_PREFIX + secrets.token_urlsafe(32)


def token_hint(token: str) -> str:
  t = (token or "").strip()
  if not t:
    return ""
  if len(t) <= 6:
    return f"...{t}"
  return f"...{t[-6:]}"
