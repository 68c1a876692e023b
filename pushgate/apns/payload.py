"""APNs payload assembly.

The builder is a mutable object consumed once through `build()`. The `aps`
dictionary is reserved for Apple's fields; custom keys live beside it.
"""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Mapping, Sequence
from typing import Any, Literal, Union, get_args

from pushgate.apns.contracts import DEFAULT_SOUND, PAYLOAD_MAXIMUM, SOUND_SUFFIX, ReservedPayloadKeyError

InterruptionLevel = Literal["passive", "active", "time-sensitive", "critical"]
INTERRUPTION_LEVELS: frozenset[str] = frozenset(get_args(InterruptionLevel))

ALERT_CATEGORY = "myNotificationCategory"
RESERVED_KEY = "aps"

ExtensionScalar = Union[str, int, float, bool, None]
ExtensionValue = Union[ExtensionScalar, Sequence["ExtensionValue"], Mapping[str, "ExtensionValue"]]

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def normalize_sound(sound: str) -> str:
  """Return the sound file name with the `.caf` suffix, defaulting when empty."""
  if not sound:
    return f"{DEFAULT_SOUND}{SOUND_SUFFIX}"
  return sound if sound.endswith(SOUND_SUFFIX) else f"{sound}{SOUND_SUFFIX}"


def coerce_text(value: ExtensionValue) -> str:
  """Render an extension value as the text stored in custom payload fields."""
  if isinstance(value, str):
    return value
  if value is None:
    return "null"
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, float) and value.is_integer():
    return str(int(value))
  if isinstance(value, int | float):
    return str(value)
  if isinstance(value, Mapping):
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
  # Sequences join their elements the way form fields repeat values.
  return ",".join(coerce_text(item) for item in value)


def parse_badge(value: ExtensionValue) -> int | None:
  """Parse a leading integer from a badge value, returning None when absent."""
  if isinstance(value, bool):
    return None
  if isinstance(value, int):
    return value
  match = _LEADING_INT_RE.match(coerce_text(value))
  if match is None:
    return None
  return int(match.group(1))


class PayloadBuilder:
  """Incrementally assemble an APNs JSON payload."""

  def __init__(self) -> None:
    self._aps: dict[str, Any] = {}
    self._custom: dict[str, Any] = {}

  def _alert(self) -> dict[str, str]:
    alert = self._aps.get("alert")
    if not isinstance(alert, dict):
      alert = {}
      self._aps["alert"] = alert
    return alert

  def alert_title(self, title: str) -> PayloadBuilder:
    self._alert()["title"] = title
    return self

  def alert_subtitle(self, subtitle: str) -> PayloadBuilder:
    self._alert()["subtitle"] = subtitle
    return self

  def alert_body(self, body: str) -> PayloadBuilder:
    self._alert()["body"] = body
    return self

  def sound(self, sound: str) -> PayloadBuilder:
    """Set the notification sound, appending `.caf` when missing."""
    self._aps["sound"] = normalize_sound(sound)
    return self

  def badge(self, badge: int) -> PayloadBuilder:
    self._aps["badge"] = badge
    return self

  def thread_id(self, thread_id: str) -> PayloadBuilder:
    """Group notifications under one thread on the device."""
    self._aps["thread-id"] = thread_id
    return self

  def category(self, category: str) -> PayloadBuilder:
    self._aps["category"] = category
    return self

  def mutable_content(self) -> PayloadBuilder:
    """Let the notification service extension rewrite the content."""
    self._aps["mutable-content"] = 1
    return self

  def content_available(self) -> PayloadBuilder:
    """Mark the payload as a background update."""
    self._aps["content-available"] = 1
    return self

  def interruption_level(self, level: str) -> PayloadBuilder:
    """Set the interruption level; only passive, active, time-sensitive and critical are accepted."""
    if level not in INTERRUPTION_LEVELS:
      raise ValueError(f"Unsupported interruption level: {level!r}")
    self._aps["interruption-level"] = level
    return self

  def relevance_score(self, score: float) -> PayloadBuilder:
    """Set the summary relevance score clamped to [0, 1]."""
    self._aps["relevance-score"] = max(0.0, min(1.0, float(score)))
    return self

  def custom(self, key: str, value: Any) -> PayloadBuilder:
    """Add a top-level custom field beside `aps`."""
    if key == RESERVED_KEY:
      raise ReservedPayloadKeyError(f"Custom payload key {key!r} is reserved.")
    self._custom[key] = value
    return self

  def build(self) -> dict[str, Any]:
    """Return the finished payload with `aps` first."""
    payload: dict[str, Any] = {RESERVED_KEY: copy.deepcopy(self._aps)}
    payload.update(copy.deepcopy(self._custom))
    return payload

  def to_json(self) -> str:
    return serialize_payload(self.build())

  def get_size(self) -> int:
    """Return the serialized payload size in UTF-8 bytes."""
    return len(self.to_json().encode("utf-8"))

  def is_oversize(self) -> bool:
    return self.get_size() > PAYLOAD_MAXIMUM


def serialize_payload(payload: Mapping[str, Any]) -> str:
  """Serialize a payload compactly, keeping non-ASCII text unescaped."""
  return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def new_payload() -> PayloadBuilder:
  return PayloadBuilder()


def _add_extension_fields(builder: PayloadBuilder, ext_params: Mapping[str, ExtensionValue]) -> None:
  # Caller fields ride along as text; a caller-supplied `aps` never reaches the payload.
  for key, value in ext_params.items():
    lowered = key.lower()
    if lowered == RESERVED_KEY:
      continue
    builder.custom(lowered, coerce_text(value))


def build_alert_payload(title: str, subtitle: str, body: str, sound: str, ext_params: Mapping[str, ExtensionValue] | None = None) -> dict[str, Any]:
  """Build a visible alert payload. `body` must already be non-empty."""
  ext_params = ext_params or {}
  builder = new_payload().mutable_content().alert_body(body).sound(sound).category(ALERT_CATEGORY)

  if title:
    builder.alert_title(title)

  if subtitle:
    builder.alert_subtitle(subtitle)

  group = ext_params.get("group")
  if group:
    builder.thread_id(coerce_text(group))

  level = ext_params.get("level")
  if level:
    normalized_level = coerce_text(level).lower()
    if normalized_level in INTERRUPTION_LEVELS:
      builder.interruption_level(normalized_level)

  if "badge" in ext_params:
    badge = parse_badge(ext_params["badge"])
    if badge is not None:
      builder.badge(badge)

  _add_extension_fields(builder, ext_params)
  return builder.build()


def build_silent_payload(ext_params: Mapping[str, ExtensionValue] | None = None) -> dict[str, Any]:
  """Build a background payload with no alert dictionary."""
  builder = new_payload().mutable_content().content_available()
  _add_extension_fields(builder, ext_params or {})
  return builder.build()


def payload_size(payload: Mapping[str, Any]) -> int:
  """Return the serialized size of a finished payload in UTF-8 bytes."""
  return len(serialize_payload(payload).encode("utf-8"))


def is_oversize(payload: Mapping[str, Any]) -> bool:
  return payload_size(payload) > PAYLOAD_MAXIMUM
