from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from pushgate.storage.token_store import InMemoryTokenStore, SqlTokenStore, TokenStoreError, build_device_key

pytestmark = pytest.mark.anyio


def test_device_keys_are_namespaced():
  assert build_device_key("abc") == "device:abc"


async def test_in_memory_store_round_trip():
  store = InMemoryTokenStore()
  assert await store.get("k") is None

  await store.put("k", "tok")
  assert await store.get("k") == "tok"
  assert await store.count() == 1

  await store.put("k", "")
  assert await store.get("k") is None
  assert store.raw("k") == ""

  await store.delete("k")
  assert store.raw("k") is None
  assert await store.count() == 0


def _session_factory(session):
  factory = MagicMock()
  factory.return_value.__aenter__ = AsyncMock(return_value=session)
  factory.return_value.__aexit__ = AsyncMock(return_value=False)
  return factory


async def test_sql_store_reads_token():
  session = AsyncMock()
  result = MagicMock()
  result.scalar_one_or_none.return_value = "tok"
  session.execute.return_value = result

  store = SqlTokenStore(_session_factory(session))
  assert await store.get("k") == "tok"
  session.execute.assert_awaited_once()


async def test_sql_store_treats_blank_token_as_missing():
  session = AsyncMock()
  result = MagicMock()
  result.scalar_one_or_none.return_value = ""
  session.execute.return_value = result

  assert await SqlTokenStore(_session_factory(session)).get("k") is None


async def test_sql_store_put_commits():
  session = AsyncMock()
  await SqlTokenStore(_session_factory(session)).put("k", "tok")
  session.execute.assert_awaited_once()
  session.commit.assert_awaited_once()


async def test_sql_store_wraps_database_errors():
  session = AsyncMock()
  session.execute.side_effect = OperationalError("select", {}, Exception("connection lost"))

  with pytest.raises(TokenStoreError, match="device token lookup failed"):
    await SqlTokenStore(_session_factory(session)).get("k")
