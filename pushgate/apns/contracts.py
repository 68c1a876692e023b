"""Contracts shared by the APNs credential, payload and delivery layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

PushType = Literal["alert", "background", "voip", "complication", "fileprovider", "mdm"]

PAYLOAD_MAXIMUM = 4096
DEFAULT_SOUND = "1107"
SOUND_SUFFIX = ".caf"
MAX_DEVICE_TOKEN_LENGTH = 128
DEFAULT_EXPIRATION_SECONDS = 24 * 60 * 60

PRIORITY_IMMEDIATE = 10
PRIORITY_POWER_SAVING = 5

APNS_ID_HEADER = "apns-id"
PROXY_AUTH_HEADER = "x-apns-proxy-auth"


class PushGatewayError(Exception):
  """Base class for push gateway failures."""


class CredentialError(PushGatewayError):
  """Raised when a provider token cannot be produced from the configured key material."""


class ReservedPayloadKeyError(PushGatewayError, ValueError):
  """Raised when a custom payload key collides with the reserved `aps` dictionary."""


@dataclass(frozen=True)
class ApnsConfig:
  """Identity and routing configuration for the upstream push service."""

  topic: str
  key_id: str
  team_id: str
  private_key: str | None
  host: str


@dataclass(frozen=True)
class ApnsNotification:
  """A single delivery request bound to a resolved device token."""

  device_token: str
  payload: dict[str, Any]
  topic: str
  push_type: PushType
  expiration: int = 0
  collapse_id: str | None = None
  priority: int | None = None

  @property
  def path(self) -> str:
    """Return the upstream request path for this device."""
    return f"/3/device/{self.device_token}"


@dataclass(frozen=True)
class ApnsResponse:
  """Classified result of one upstream delivery attempt."""

  status_code: int
  reason: str | None = None
  apns_id: str | None = None

  @property
  def ok(self) -> bool:
    """Return True when the upstream accepted the notification."""
    return self.status_code == 200
