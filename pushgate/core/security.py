"""Basic-auth gatekeeping for push routes."""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from pushgate.config import Settings, get_settings

logger = logging.getLogger(__name__)

BASIC_PREFIX = "Basic "


def check_basic_auth(authorization: str | None, settings: Settings) -> bool:
  """Return True when basic auth is disabled or the header carries the configured credentials."""
  if not settings.basic_auth_enabled:
    return True

  if not authorization or not authorization.startswith(BASIC_PREFIX):
    return False

  try:
    decoded = base64.b64decode(authorization[len(BASIC_PREFIX) :], validate=True)
  except (binascii.Error, ValueError):
    return False

  expected = f"{settings.auth_user}:{settings.auth_password}".encode()
  return secrets.compare_digest(decoded, expected)


async def require_basic_auth(request: Request, settings: Annotated[Settings, Depends(get_settings)]) -> None:
  """Reject the request with 401 unless basic auth passes."""
  if check_basic_auth(request.headers.get("authorization"), settings):
    return

  logger.warning("Unauthorized push request path=%s", request.url.path)
  raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Basic"})
