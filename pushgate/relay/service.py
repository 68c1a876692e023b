"""Relay forwarding: replay an inbound delivery request to APNs over HTTP/2."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from pushgate.apns.contracts import APNS_ID_HEADER, PROXY_AUTH_HEADER

logger = logging.getLogger(__name__)

RELAY_PREFIX = "/apns-proxy"

# HTTP/2 forbids connection-specific headers; content-length is recomputed from the body.
_DROPPED_HEADERS = frozenset({"host", PROXY_AUTH_HEADER, "connection", "keep-alive", "proxy-connection", "transfer-encoding", "upgrade", "te", "content-length"})


@dataclass(frozen=True)
class RelayResponse:
  """Upstream response reduced to what the relay hands back."""

  status_code: int
  body: bytes
  headers: dict[str, str]


def is_authorized(received_secret: str | None, expected_secret: str | None) -> bool:
  """Check the shared secret in constant time; an unset secret leaves the relay open."""
  if not expected_secret:
    return True
  if not received_secret:
    return False
  return secrets.compare_digest(received_secret.encode("utf-8"), expected_secret.encode("utf-8"))


def strip_relay_prefix(path: str) -> str:
  """Remove the `/apns-proxy` mount prefix when present."""
  if path.startswith(RELAY_PREFIX):
    return path[len(RELAY_PREFIX) :] or "/"
  return path


def forwardable_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
  """Lower-case inbound headers and drop the ones that must not reach APNs."""
  forwarded: dict[str, str] = {}
  for key, value in headers:
    lower_key = key.lower()
    if lower_key in _DROPPED_HEADERS:
      continue
    forwarded[lower_key] = value
  return forwarded


def reduce_response_headers(upstream_headers: httpx.Headers) -> dict[str, str]:
  """Keep the content type and delivery id from the upstream response."""
  headers = {"content-type": "application/json"}
  apns_id = upstream_headers.get(APNS_ID_HEADER)
  if apns_id:
    headers[APNS_ID_HEADER] = apns_id
  return headers


class ApnsRelay:
  """Forward delivery requests to one upstream APNs host."""

  def __init__(self, *, upstream_host: str, timeout_seconds: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._upstream_host = upstream_host.rstrip("/")
    self._timeout_seconds = timeout_seconds
    self._transport = transport

  def _build_client(self) -> httpx.AsyncClient:
    timeout = httpx.Timeout(self._timeout_seconds)
    if self._transport is not None:
      return httpx.AsyncClient(transport=self._transport, timeout=timeout, trust_env=False)
    return httpx.AsyncClient(http2=True, timeout=timeout, trust_env=False)

  async def forward(self, path: str, headers: Iterable[tuple[str, str]], body: bytes) -> RelayResponse:
    """POST `body` to the upstream path; the connection closes on every exit path."""
    url = f"{self._upstream_host}{strip_relay_prefix(path)}"
    async with self._build_client() as client:
      response = await client.post(url, headers=forwardable_headers(headers), content=body)
      return RelayResponse(status_code=response.status_code, body=response.content, headers=reduce_response_headers(response.headers))
