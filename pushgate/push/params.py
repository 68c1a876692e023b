"""Merge push parameters from path, query string and request body."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import unquote

from starlette.datastructures import UploadFile
from starlette.requests import Request

from pushgate.apns.contracts import PushGatewayError

logger = logging.getLogger(__name__)


class RequestBindError(PushGatewayError):
  """Raised when a request body cannot be decoded into push parameters."""


def _safe_unquote(value: str) -> str:
  try:
    return unquote(value, errors="strict")
  except UnicodeDecodeError:
    return value


def parse_v1_route(path: str) -> dict[str, str] | None:
  """Map `/:key[/:body]`, `/:key/:title/:body` and `/:key/:title/:subtitle/:body` onto fields."""
  parts = path.strip("/").split("/")
  if not parts or not parts[0]:
    return None

  params = {"device_key": parts[0]}
  if len(parts) == 2:
    params["body"] = parts[1]
  elif len(parts) == 3:
    params["title"] = parts[1]
    params["body"] = parts[2]
  elif len(parts) >= 4:
    params["title"] = parts[1]
    params["subtitle"] = parts[2]
    params["body"] = parts[3]

  return {key: _safe_unquote(value) for key, value in params.items()}


def request_path(request: Request) -> str:
  """Return the still-encoded request path so `%2F` inside a segment does not split it."""
  raw_path = request.scope.get("raw_path")
  if isinstance(raw_path, bytes | bytearray):
    return raw_path.decode("latin-1").split("?", 1)[0]
  return request.url.path


async def _form_fields(request: Request) -> dict[str, str]:
  form = await request.form()
  fields: dict[str, str] = {}
  for key, value in form.multi_items():
    # File parts never carry push fields.
    if isinstance(value, UploadFile):
      continue
    fields.setdefault(key.lower(), value)
  return fields


async def parse_push_params(request: Request, path_params: dict[str, str] | None = None) -> dict[str, Any]:
  """Collect V2 parameters with precedence query < body < path.

  Query and form keys are lower-cased; JSON keys are kept verbatim so the
  normalizer can match them case-insensitively.
  """
  params: dict[str, Any] = {key.lower(): value for key, value in request.query_params.items()}
  content_type = request.headers.get("content-type", "")

  if "application/json" in content_type:
    raw_body = await request.body()
    if raw_body.strip():
      try:
        body = json.loads(raw_body)
      except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestBindError("request bind failed") from exc
      if not isinstance(body, dict):
        raise RequestBindError("request bind failed")
      params.update(body)
  elif "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
    try:
      params.update(await _form_fields(request))
    except Exception as exc:  # noqa: BLE001
      raise RequestBindError("request bind failed") from exc

  for key, value in (path_params or {}).items():
    params[key.lower()] = value

  return params


async def parse_v1_params(request: Request, path_params: dict[str, str]) -> dict[str, Any]:
  """Collect V1 parameters with precedence path > query > form, first writer wins."""
  params: dict[str, Any] = dict(path_params)

  for key, value in request.query_params.multi_items():
    params.setdefault(key.lower(), value)

  if request.method == "POST":
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
      try:
        form_fields = await _form_fields(request)
      except Exception as exc:  # noqa: BLE001
        logger.debug("Ignoring unreadable V1 form body: %s", exc)
        form_fields = {}
      for key, value in form_fields.items():
        params.setdefault(key, value)

  return params
