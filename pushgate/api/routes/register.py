"""Device registration: bind an alias to a device token, and check an alias."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pushgate.api.deps import get_token_store
from pushgate.api.models import DeviceRegistration
from pushgate.api.responses import data, envelope_response, error_response, success
from pushgate.config import Settings, get_settings
from pushgate.push.params import RequestBindError, parse_push_params
from pushgate.storage.token_store import TokenStore
from pushgate.utils.ids import generate_device_key

logger = logging.getLogger(__name__)

router = APIRouter()


async def _register(request: Request, settings: Settings, token_store: TokenStore) -> JSONResponse:
  if not settings.register_enabled:
    return error_response(403, "Registration is disabled")

  try:
    fields: dict[str, Any] = await parse_push_params(request)
  except RequestBindError:
    return error_response(400, "request bind failed")

  registration = DeviceRegistration.model_validate(fields)
  token_error = registration.token_error()
  if token_error:
    return error_response(400, token_error)

  device_key = registration.device_key or generate_device_key()
  try:
    await token_store.put(device_key, registration.device_token)
  except Exception as exc:  # noqa: BLE001
    logger.error("Device registration failed device_key=%s error=%s", device_key, exc)
    return error_response(500, str(exc) or "Internal server error")

  logger.info("Device registered device_key=%s token=%s...", device_key, registration.device_token[:8])
  return envelope_response(data({"key": device_key, "device_key": device_key, "device_token": registration.device_token}))


@router.post("/register")
async def register_device(request: Request, settings: Annotated[Settings, Depends(get_settings)], token_store: Annotated[TokenStore, Depends(get_token_store)]) -> JSONResponse:
  """Store the device token under the given alias, generating one when blank."""
  return await _register(request, settings, token_store)


@router.get("/register")
async def register_device_legacy(request: Request, settings: Annotated[Settings, Depends(get_settings)], token_store: Annotated[TokenStore, Depends(get_token_store)]) -> JSONResponse:
  """Legacy clients register with query parameters on a GET."""
  if not request.query_params:
    return error_response(404, "Not found")
  return await _register(request, settings, token_store)


@router.get("/register/{device_key}")
async def check_device(device_key: str, token_store: Annotated[TokenStore, Depends(get_token_store)]) -> JSONResponse:
  """Report whether an alias currently holds a usable token."""
  # Checks stay available when registration is disabled.
  if not device_key.strip():
    return error_response(400, "device_key is required")

  try:
    device_token = await token_store.get(device_key)
  except Exception as exc:  # noqa: BLE001
    logger.error("Device check failed device_key=%s error=%s", device_key, exc)
    return error_response(500, str(exc) or "Internal server error")

  if not device_token:
    return error_response(404, "device key not found")
  return envelope_response(success())
