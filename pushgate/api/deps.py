"""Shared FastAPI dependencies wiring the push pipeline together."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from pushgate.apns.client import ApnsClient
from pushgate.apns.contracts import ApnsConfig
from pushgate.apns.credentials import CredentialCache, ProviderTokenSigner
from pushgate.config import Settings, get_settings
from pushgate.core.database import get_session_factory
from pushgate.push.batch import BatchDispatcher
from pushgate.push.service import PushService
from pushgate.relay.service import ApnsRelay
from pushgate.storage.token_store import InMemoryTokenStore, SqlTokenStore, TokenStore

logger = logging.getLogger(__name__)


def build_apns_config(settings: Settings) -> ApnsConfig:
  return ApnsConfig(topic=settings.apns_topic, key_id=settings.apns_key_id, team_id=settings.apns_team_id, private_key=settings.apns_private_key, host=settings.apns_host)


@lru_cache(maxsize=1)
def get_credential_cache() -> CredentialCache:
  """Return the process-wide provider token cache."""
  settings = get_settings()
  signer = ProviderTokenSigner(key_id=settings.apns_key_id, team_id=settings.apns_team_id, private_key=settings.apns_private_key)
  return CredentialCache(signer)


@lru_cache(maxsize=1)
def get_token_store() -> TokenStore:
  """Return the Postgres-backed store when configured, otherwise an in-memory one."""
  session_factory = get_session_factory()
  if session_factory is not None:
    return SqlTokenStore(session_factory)

  logger.warning("No database configured; device tokens are held in memory and lost on restart.")
  return InMemoryTokenStore()


def get_apns_client(settings: Annotated[Settings, Depends(get_settings)], credentials: Annotated[CredentialCache, Depends(get_credential_cache)]) -> ApnsClient:
  return ApnsClient(config=build_apns_config(settings), credentials=credentials, timeout_seconds=settings.apns_timeout_seconds, proxy_secret=settings.proxy_secret)


def get_push_service(settings: Annotated[Settings, Depends(get_settings)], apns_client: Annotated[ApnsClient, Depends(get_apns_client)], token_store: Annotated[TokenStore, Depends(get_token_store)]) -> PushService:
  return PushService(apns_client=apns_client, token_store=token_store, proxy_enabled=settings.proxy_enabled, proxy_url=settings.proxy_url)


def get_batch_dispatcher(settings: Annotated[Settings, Depends(get_settings)], service: Annotated[PushService, Depends(get_push_service)]) -> BatchDispatcher:
  return BatchDispatcher(service, max_batch_count=settings.max_batch_push_count)


def get_relay(settings: Annotated[Settings, Depends(get_settings)]) -> ApnsRelay:
  return ApnsRelay(upstream_host=settings.apns_host, timeout_seconds=settings.apns_timeout_seconds)
