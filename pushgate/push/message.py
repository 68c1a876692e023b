"""Normalize loosely-typed push request fields into a canonical message."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from pushgate.apns.contracts import DEFAULT_SOUND, SOUND_SUFFIX
from pushgate.apns.payload import ExtensionValue, normalize_sound

EMPTY_ALERT_BODY = "Empty Message"
_TRUTHY_DELETE_VALUES: tuple[object, ...] = ("1", 1, True)


@dataclass(frozen=True)
class PushMessage:
  """Canonical push message built once per delivery attempt."""

  device_key: str = ""
  id: str = ""
  title: str = ""
  subtitle: str = ""
  body: str = ""
  sound: str = f"{DEFAULT_SOUND}{SOUND_SUFFIX}"
  ext_params: Mapping[str, ExtensionValue] = field(default_factory=lambda: MappingProxyType({}))

  @property
  def is_delete(self) -> bool:
    """Return True when the caller requested a silent delete push."""
    value = self.ext_params.get("delete")
    # `True == 1` in Python, so compare types to keep 1.0 and "true" out.
    return any(type(value) is type(candidate) and value == candidate for candidate in _TRUTHY_DELETE_VALUES)

  @property
  def is_empty_alert(self) -> bool:
    return not self.title and not self.subtitle and not self.body

  def with_placeholder_body(self) -> PushMessage:
    """Return a copy with a placeholder body when every alert field is empty."""
    if not self.is_empty_alert:
      return self
    return replace(self, body=EMPTY_ALERT_BODY)


def build_push_message(params: Mapping[str, Any]) -> PushMessage:
  """Map request fields onto a `PushMessage`, matching names case-insensitively.

  Recognized string fields are `id`, `device_key`, `title`, `subtitle`, `body`
  and `sound`. Every other string lands in the extension bag under its
  lower-cased name. Nested mappings merge their keys into the bag one level
  deep; other non-string values are kept as-is under the lower-cased name.
  """
  fields: dict[str, str] = {}
  ext_params: dict[str, ExtensionValue] = {}

  for key, value in params.items():
    lower_key = str(key).lower()

    if isinstance(value, str):
      if lower_key == "id":
        fields["id"] = value
        ext_params["id"] = value
      elif lower_key in {"device_key", "title", "subtitle", "body"}:
        fields[lower_key] = value
      elif lower_key == "sound":
        fields["sound"] = normalize_sound(value)
      else:
        ext_params[lower_key] = value
    elif isinstance(value, Mapping):
      for nested_key, nested_value in value.items():
        ext_params[str(nested_key)] = nested_value
    else:
      ext_params[lower_key] = value

  return PushMessage(ext_params=MappingProxyType(ext_params), **fields)
