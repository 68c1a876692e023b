"""Push endpoints: V2 (`/push`, single or batch) and the legacy V1 path routes."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pushgate.api.deps import get_batch_dispatcher, get_push_service
from pushgate.api.responses import data, envelope_response, error_response, failed, success
from pushgate.core.security import require_basic_auth
from pushgate.push.batch import BatchDispatcher, BatchLimitExceededError, InvalidDeviceKeysError, parse_device_keys
from pushgate.push.params import RequestBindError, parse_push_params, parse_v1_params, parse_v1_route, request_path
from pushgate.push.service import PushResult, PushService

logger = logging.getLogger(__name__)

RESERVED_PATHS = ("/favicon.ico", "/robots.txt")

router = APIRouter(dependencies=[Depends(require_basic_auth)])
v1_router = APIRouter()


def _single_push_response(result: PushResult) -> JSONResponse:
  if not result.ok:
    return envelope_response(failed(result.code, result.error or "push failed"), result.code)
  return envelope_response(success())


@router.api_route("/push", methods=["GET", "POST"])
async def push_v2(request: Request, service: Annotated[PushService, Depends(get_push_service)], dispatcher: Annotated[BatchDispatcher, Depends(get_batch_dispatcher)]) -> JSONResponse:
  """Send one push via `device_key`, or a batch via `device_keys`."""
  try:
    params = await parse_push_params(request, dict(request.path_params))
  except RequestBindError:
    return error_response(400, "request bind failed")

  device_keys: list[str] = []
  raw_device_keys = params.pop("device_keys", None)
  if raw_device_keys:
    try:
      device_keys = parse_device_keys(raw_device_keys)
    except InvalidDeviceKeysError as exc:
      return error_response(400, str(exc))

  request_base_url = str(request.base_url)
  if not device_keys:
    return _single_push_response(await service.execute_push(params, request_base_url=request_base_url))

  try:
    items = await dispatcher.dispatch(device_keys, params, request_base_url=request_base_url)
  except BatchLimitExceededError as exc:
    logger.info("Rejected batch push size=%s limit=%s", len(device_keys), exc.limit)
    return error_response(400, str(exc))

  return envelope_response(data([item.to_dict() for item in items]))


def _is_reserved_path(path: str) -> bool:
  normalized = path.lower()
  return any(normalized == reserved or normalized.startswith(f"{reserved}/") for reserved in RESERVED_PATHS)


@v1_router.api_route("/{path:path}", methods=["GET", "POST"], include_in_schema=False, dependencies=[Depends(require_basic_auth)])
async def push_v1(request: Request, service: Annotated[PushService, Depends(get_push_service)]) -> JSONResponse:
  """Handle `/:device_key[/:title[/:subtitle]]/:body` style pushes."""
  raw_path = request_path(request)
  if raw_path in {"", "/"} or _is_reserved_path(raw_path):
    return error_response(404, "not found")

  route_params = parse_v1_route(raw_path)
  if not route_params:
    return error_response(400, "device key is empty")

  params = await parse_v1_params(request, route_params)
  return _single_push_response(await service.execute_push(params, request_base_url=str(request.base_url)))
