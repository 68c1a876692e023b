"""Single push delivery: alias resolution, payload selection, transport and token invalidation."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from pushgate.apns.client import ApnsClient
from pushgate.apns.contracts import DEFAULT_EXPIRATION_SECONDS, MAX_DEVICE_TOKEN_LENGTH, PRIORITY_IMMEDIATE, PRIORITY_POWER_SAVING, ApnsNotification, PushType
from pushgate.apns.payload import build_alert_payload, build_silent_payload, is_oversize
from pushgate.push.message import PushMessage, build_push_message
from pushgate.storage.token_store import TokenStore

logger = logging.getLogger(__name__)

RELAY_PATH = "/apns-proxy"
BAD_DEVICE_TOKEN = "BadDeviceToken"


@dataclass(frozen=True)
class PushResult:
  """Outcome of one delivery attempt as reported to the caller."""

  code: int
  error: str | None = None
  apns_id: str | None = None

  @property
  def ok(self) -> bool:
    return self.code == 200


async def best_effort(action: Callable[[], Awaitable[None]], *, description: str) -> bool:
  """Run a store side effect, logging any failure instead of raising it.

  Returns True when the action completed. Failures never change the outcome
  reported for the delivery that triggered them.
  """
  try:
    await action()
  except Exception as exc:  # noqa: BLE001
    logger.warning("Best-effort %s failed: %s", description, exc)
    return False
  return True


def derive_proxy_url(request_base_url: str | None) -> str | None:
  """Derive the co-hosted relay URL from the inbound request's scheme and host."""
  if not request_base_url:
    return None

  parts = urlsplit(request_base_url)
  if not parts.scheme or not parts.netloc:
    logger.warning("Failed to derive relay URL from request URL %r", request_base_url)
    return None

  return f"{parts.scheme}://{parts.netloc}{RELAY_PATH}"


class PushService:
  """Deliver canonical push messages to APNs for aliases held in the token store."""

  def __init__(self, *, apns_client: ApnsClient, token_store: TokenStore, proxy_enabled: bool = True, proxy_url: str | None = None, clock: Callable[[], float] = time.time) -> None:
    self._apns_client = apns_client
    self._token_store = token_store
    self._proxy_enabled = proxy_enabled
    self._proxy_url = proxy_url
    self._clock = clock

  @property
  def token_store(self) -> TokenStore:
    return self._token_store

  def resolve_proxy_url(self, request_base_url: str | None = None) -> str | None:
    """Pick the relay URL, or None for direct delivery."""
    if not self._proxy_enabled:
      return None
    return self._proxy_url or derive_proxy_url(request_base_url)

  def build_notification(self, message: PushMessage, device_token: str) -> ApnsNotification:
    """Turn a canonical message into a delivery request for a resolved token."""
    push_type: PushType
    if message.is_delete:
      payload = build_silent_payload(message.ext_params)
      push_type = "background"
    else:
      # APNs rejects alerts with no title, subtitle or body.
      message = message.with_placeholder_body()
      payload = build_alert_payload(message.title, message.subtitle, message.body, message.sound, message.ext_params)
      push_type = "alert"

    if is_oversize(payload):
      logger.warning("APNs payload exceeds the size limit device_key=%s", message.device_key)

    return ApnsNotification(
      device_token=device_token,
      payload=payload,
      topic=self._apns_client.config.topic,
      push_type=push_type,
      expiration=int(self._clock()) + DEFAULT_EXPIRATION_SECONDS,
      collapse_id=message.id or None,
      priority=PRIORITY_POWER_SAVING if push_type == "background" else PRIORITY_IMMEDIATE,
    )

  async def execute_push(self, params: Mapping[str, Any], *, request_base_url: str | None = None) -> PushResult:
    """Normalize request fields and deliver them to the alias they name."""
    return await self.push(build_push_message(params), request_base_url=request_base_url)

  async def push(self, message: PushMessage, *, request_base_url: str | None = None) -> PushResult:
    """Deliver one canonical message; failures are returned, never raised."""
    if not message.device_key:
      return PushResult(code=400, error="device key is empty")

    try:
      device_token = await self._token_store.get(message.device_key)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Device token lookup failed device_key=%s error=%s", message.device_key, exc)
      return PushResult(code=400, error=f"failed to get device token: {str(exc) or 'unknown error'}")

    if not device_token:
      return PushResult(code=400, error="device token not found")

    if len(device_token) > MAX_DEVICE_TOKEN_LENGTH:
      # A token this long is corrupt; drop the record so the device re-registers.
      await best_effort(lambda: self._token_store.delete(message.device_key), description=f"corrupt token delete device_key={message.device_key}")
      return PushResult(code=400, error="invalid device token, has been removed")

    notification = self.build_notification(message, device_token)
    response = await self._apns_client.send(notification, proxy_url=self.resolve_proxy_url(request_base_url))

    if response.ok:
      logger.info("Push delivered device_key=%s push_type=%s apns_id=%s", message.device_key, notification.push_type, response.apns_id)
      return PushResult(code=200, apns_id=response.apns_id)

    if _is_dead_token(response.status_code, response.reason):
      # Blank the token rather than deleting the alias, so the key stays claimed.
      await best_effort(lambda: self._token_store.put(message.device_key, ""), description=f"token invalidation device_key={message.device_key}")

    return PushResult(code=response.status_code, error=response.reason or "push failed", apns_id=response.apns_id)


def _is_dead_token(status_code: int, reason: str | None) -> bool:
  """Return True for upstream responses that mean the device token is gone."""
  if status_code == 410:
    return True
  return status_code == 400 and BAD_DEVICE_TOKEN in (reason or "")
