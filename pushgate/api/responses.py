"""Caller-facing response envelope `{code, message, data?, timestamp}`."""

from __future__ import annotations

import time
from typing import Any

from fastapi.responses import JSONResponse

SUCCESS_MESSAGE = "success"


def _timestamp() -> int:
  return int(time.time())


def success() -> dict[str, Any]:
  return {"code": 200, "message": SUCCESS_MESSAGE, "timestamp": _timestamp()}


def failed(code: int, message: str) -> dict[str, Any]:
  return {"code": code, "message": message, "timestamp": _timestamp()}


def data(payload: Any) -> dict[str, Any]:
  return {"code": 200, "message": SUCCESS_MESSAGE, "data": payload, "timestamp": _timestamp()}


def envelope_response(envelope: dict[str, Any], status_code: int | None = None, *, headers: dict[str, str] | None = None) -> JSONResponse:
  """Render an envelope, using its `code` as the HTTP status unless overridden."""
  return JSONResponse(status_code=status_code or envelope["code"], content=envelope, headers=headers)


def error_response(code: int, message: str) -> JSONResponse:
  return envelope_response(failed(code, message), code)
