"""Token Store bridge: alias to device token lookups behind a small async protocol."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pushgate.apns.contracts import PushGatewayError
from pushgate.storage.models import DeviceTokenRecord

logger = logging.getLogger(__name__)

DEVICE_KEY_PREFIX = "device:"


class TokenStoreError(PushGatewayError):
  """Raised when the underlying store cannot serve a lookup or write."""


def build_device_key(device_key: str) -> str:
  """Namespace an alias before it reaches the underlying store."""
  return f"{DEVICE_KEY_PREFIX}{device_key}"


class TokenStore(Protocol):
  """Single-key access to device tokens keyed by alias."""

  async def get(self, device_key: str) -> str | None:
    """Return the stored token, or None when the alias is absent or blank."""
    ...

  async def put(self, device_key: str, device_token: str) -> None:
    """Store or overwrite the token for an alias."""
    ...

  async def delete(self, device_key: str) -> None:
    """Remove the alias entirely."""
    ...

  async def count(self) -> int:
    """Return the number of stored aliases for diagnostics."""
    ...


class InMemoryTokenStore:
  """Process-local token store used when no database is configured."""

  def __init__(self, initial: dict[str, str] | None = None) -> None:
    self._data: dict[str, str] = {build_device_key(key): value for key, value in (initial or {}).items()}

  async def get(self, device_key: str) -> str | None:
    return self._data.get(build_device_key(device_key)) or None

  async def put(self, device_key: str, device_token: str) -> None:
    self._data[build_device_key(device_key)] = device_token

  async def delete(self, device_key: str) -> None:
    self._data.pop(build_device_key(device_key), None)

  async def count(self) -> int:
    return sum(1 for key in self._data if key.startswith(DEVICE_KEY_PREFIX))

  def raw(self, device_key: str) -> str | None:
    """Return the stored value verbatim, including blank invalidated tokens."""
    return self._data.get(build_device_key(device_key))


class SqlTokenStore:
  """Persist device tokens in Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def get(self, device_key: str) -> str | None:
    stmt = select(DeviceTokenRecord.token).where(DeviceTokenRecord.key == build_device_key(device_key))
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        token = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
      raise TokenStoreError(f"device token lookup failed: {exc}") from exc

    return token or None

  async def put(self, device_key: str, device_token: str) -> None:
    # Upsert by key so re-registration replaces the previous token.
    stmt = insert(DeviceTokenRecord).values(key=build_device_key(device_key), token=device_token)
    stmt = stmt.on_conflict_do_update(index_elements=["key"], set_={"token": device_token, "updated_at": func.now()})
    try:
      async with self._session_factory() as session:
        await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as exc:
      raise TokenStoreError(f"device token write failed: {exc}") from exc

  async def delete(self, device_key: str) -> None:
    stmt = delete(DeviceTokenRecord).where(DeviceTokenRecord.key == build_device_key(device_key))
    try:
      async with self._session_factory() as session:
        await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as exc:
      raise TokenStoreError(f"device token delete failed: {exc}") from exc

  async def count(self) -> int:
    stmt = select(func.count()).select_from(DeviceTokenRecord).where(DeviceTokenRecord.key.startswith(DEVICE_KEY_PREFIX))
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        return int(result.scalar_one())
    except SQLAlchemyError as exc:
      raise TokenStoreError(f"device count failed: {exc}") from exc
