"""Liveness and diagnostics endpoints."""

from __future__ import annotations

import logging
import os
import platform
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from pushgate import __version__
from pushgate.api.deps import get_token_store
from pushgate.api.models import ServerInfo
from pushgate.api.responses import envelope_response, success
from pushgate.storage.token_store import TokenStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ping")
async def ping() -> JSONResponse:
  return envelope_response(success())


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
  return "ok"


@router.get("/info", response_model=ServerInfo)
async def info(token_store: Annotated[TokenStore, Depends(get_token_store)]) -> ServerInfo:
  """Return build details and the number of registered devices."""
  try:
    devices = await token_store.count()
  except Exception as exc:  # noqa: BLE001
    # Diagnostics should stay up when the store is unreachable.
    logger.warning("Device count failed: %s", exc)
    devices = 0

  return ServerInfo(version=__version__, arch=f"{platform.system().lower()}/{platform.machine().lower()}", commit=os.getenv("PUSHGATE_COMMIT", "HEAD"), devices=devices)
