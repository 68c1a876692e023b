"""Identifier utilities."""

from __future__ import annotations

import secrets

# Base57: alphanumerics without the look-alike characters 0, O, 1, I and l.
BASE57_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
DEVICE_KEY_LENGTH = 22


def generate_device_key(size: int = DEVICE_KEY_LENGTH) -> str:
  """Return a new random alias for a registering device."""
  return "".join(secrets.choice(BASE57_ALPHABET) for _ in range(size))
