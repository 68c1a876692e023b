from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pushgate.apns.contracts import MAX_DEVICE_TOKEN_LENGTH


class DeviceRegistration(BaseModel):
  """Registration fields accepted under both current and legacy names."""

  device_key: str = Field(default="", validation_alias=AliasChoices("device_key", "key"), description="Alias to bind; blank asks the server to generate one.")
  device_token: str = Field(default="", validation_alias=AliasChoices("device_token", "devicetoken"), description="APNs device token.")
  model_config = ConfigDict(extra="ignore")

  @field_validator("device_key", "device_token", mode="before")
  @classmethod
  def coerce_text(cls, value: Any) -> str:
    # Form and query values arrive as text; JSON clients sometimes send numbers.
    if value is None:
      return ""
    return str(value).strip()

  def token_error(self) -> str | None:
    """Return why the token cannot be stored, or None when it is acceptable."""
    if not self.device_token:
      return "device token is empty"
    if len(self.device_token) > MAX_DEVICE_TOKEN_LENGTH:
      return f"device token is too long (max {MAX_DEVICE_TOKEN_LENGTH} characters)"
    return None


class ServerInfo(BaseModel):
  """Response model for the `/info` endpoint."""

  version: str
  arch: str
  commit: str
  devices: int
