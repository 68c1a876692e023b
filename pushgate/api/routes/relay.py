"""Relay endpoint: replay authenticated delivery requests to APNs."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from pushgate.api.deps import get_relay
from pushgate.apns.contracts import PROXY_AUTH_HEADER
from pushgate.config import Settings, get_settings
from pushgate.relay.service import ApnsRelay, is_authorized, strip_relay_prefix

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{path:path}", include_in_schema=False)
async def relay_to_apns(request: Request, settings: Annotated[Settings, Depends(get_settings)], relay: Annotated[ApnsRelay, Depends(get_relay)]) -> Response:
  """Forward the request path, headers and body to the upstream host."""
  if not is_authorized(request.headers.get(PROXY_AUTH_HEADER), settings.proxy_secret):
    logger.warning("Rejected relay request with a missing or wrong secret path=%s", request.url.path)
    return JSONResponse(status_code=401, content={"reason": "Unauthorized"})

  body = await request.body()
  try:
    upstream = await relay.forward(strip_relay_prefix(request.url.path), request.headers.items(), body)
  except Exception as exc:  # noqa: BLE001
    logger.error("Relay forwarding failed path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"reason": str(exc) or type(exc).__name__})

  return Response(content=upstream.body, status_code=upstream.status_code, headers=upstream.headers)
