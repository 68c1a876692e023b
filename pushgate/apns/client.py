"""APNs delivery over HTTP/2, either directly or through the relay."""

from __future__ import annotations

import json
import logging

import httpx

from pushgate.apns.contracts import APNS_ID_HEADER, PROXY_AUTH_HEADER, ApnsConfig, ApnsNotification, ApnsResponse, CredentialError
from pushgate.apns.credentials import CredentialCache
from pushgate.apns.payload import serialize_payload

logger = logging.getLogger(__name__)

EXPIRED_PROVIDER_TOKEN = "ExpiredProviderToken"


def extract_reason(raw_body: str) -> str | None:
  """Return the `reason` from an APNs JSON error body, or the raw text when it is not JSON."""
  if not raw_body:
    return None

  try:
    parsed = json.loads(raw_body)
  except json.JSONDecodeError:
    return raw_body

  if isinstance(parsed, dict) and parsed.get("reason"):
    return str(parsed["reason"])

  return raw_body


def build_request_headers(notification: ApnsNotification, *, token: str) -> dict[str, str]:
  """Build the APNs request headers for one notification."""
  headers = {
    "authorization": f"bearer {token}",
    "apns-topic": notification.topic,
    "apns-push-type": notification.push_type,
    "apns-expiration": str(notification.expiration or 0),
    "content-type": "application/json",
  }

  if notification.collapse_id:
    headers["apns-collapse-id"] = notification.collapse_id

  if notification.priority:
    headers["apns-priority"] = str(notification.priority)

  return headers


class ApnsClient:
  """Send single notifications to APNs and classify the upstream response."""

  def __init__(self, *, config: ApnsConfig, credentials: CredentialCache, timeout_seconds: float | None = None, proxy_secret: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._config = config
    self._credentials = credentials
    self._timeout_seconds = timeout_seconds
    self._proxy_secret = proxy_secret
    self._transport = transport

  @property
  def config(self) -> ApnsConfig:
    return self._config

  def _build_client(self) -> httpx.AsyncClient:
    """Build a short-lived HTTP/2 client; the relay and APNs both speak h2."""
    # No timeout unless one is configured explicitly.
    timeout = httpx.Timeout(self._timeout_seconds)
    if self._transport is not None:
      return httpx.AsyncClient(transport=self._transport, timeout=timeout, trust_env=False)
    return httpx.AsyncClient(http2=True, timeout=timeout, trust_env=False)

  async def send(self, notification: ApnsNotification, *, proxy_url: str | None = None) -> ApnsResponse:
    """Deliver one notification, through the relay when `proxy_url` is given.

    Request construction and transport failures both come back as a 500 outcome carrying the error text.
    """
    try:
      token = self._credentials.get_token()
    except CredentialError as exc:
      logger.error("APNs provider token generation failed: %s", exc)
      return ApnsResponse(status_code=500, reason=str(exc) or "Failed to generate APNs token")

    via = "relay" if proxy_url else "direct"
    # Non-ASCII header values raise UnicodeEncodeError (a ValueError) while httpx builds the request.
    try:
      headers = build_request_headers(notification, token=token)
      if proxy_url:
        url = f"{proxy_url.rstrip('/')}{notification.path}"
        if self._proxy_secret:
          headers[PROXY_AUTH_HEADER] = self._proxy_secret
      else:
        url = f"{self._config.host}{notification.path}"

      body = serialize_payload(notification.payload).encode("utf-8")
      async with self._build_client() as client:
        response = await client.post(url, headers=headers, content=body)
        raw_body = response.text
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
      logger.warning("APNs delivery failed via=%s token=%s... error=%s", via, notification.device_token[:8], exc)
      return ApnsResponse(status_code=500, reason=str(exc) or type(exc).__name__)

    return self._classify(response.status_code, raw_body, response.headers.get(APNS_ID_HEADER))

  def _classify(self, status_code: int, raw_body: str, apns_id: str | None) -> ApnsResponse:
    """Map the upstream status and body into an outcome, clearing stale credentials."""
    if status_code == 200:
      return ApnsResponse(status_code=200, apns_id=apns_id or None)

    reason = extract_reason(raw_body)
    # An expired provider token is discarded so the next call signs a new one.
    if status_code == 403 and reason == EXPIRED_PROVIDER_TOKEN:
      logger.info("APNs reported an expired provider token; clearing credential cache.")
      self._credentials.clear()

    logger.info("APNs rejected notification status=%s reason=%s apns_id=%s", status_code, reason, apns_id)
    return ApnsResponse(status_code=status_code, reason=reason, apns_id=apns_id or None)
