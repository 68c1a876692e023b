"""Shared fixtures: signing key, credential cache, in-memory token store and app wiring."""

from __future__ import annotations

import dataclasses

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

from pushgate.api.deps import build_apns_config, get_apns_client, get_credential_cache, get_relay, get_token_store
from pushgate.apns.client import ApnsClient
from pushgate.apns.contracts import ApnsConfig
from pushgate.apns.credentials import CredentialCache, ProviderTokenSigner
from pushgate.config import Settings, get_settings
from pushgate.main import create_app
from pushgate.relay.service import ApnsRelay
from pushgate.storage.token_store import InMemoryTokenStore

TEST_KEY_ID = "KEYID12345"
TEST_TEAM_ID = "TEAMID6789"
TEST_TOPIC = "me.fin.bark"
TEST_DEVICE_TOKEN = "a" * 64


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture(scope="session")
def signing_key() -> ec.EllipticCurvePrivateKey:
  return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def private_key_pem(signing_key) -> str:
  return signing_key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()).decode("ascii")


@pytest.fixture
def credential_cache(private_key_pem) -> CredentialCache:
  return CredentialCache(ProviderTokenSigner(key_id=TEST_KEY_ID, team_id=TEST_TEAM_ID, private_key=private_key_pem))


@pytest.fixture
def apns_config(private_key_pem) -> ApnsConfig:
  return ApnsConfig(topic=TEST_TOPIC, key_id=TEST_KEY_ID, team_id=TEST_TEAM_ID, private_key=private_key_pem, host="https://api.push.apple.com")


@pytest.fixture
def token_store() -> InMemoryTokenStore:
  return InMemoryTokenStore({"alias-a": TEST_DEVICE_TOKEN})


@pytest.fixture
def settings(private_key_pem) -> Settings:
  # Proxying off keeps route tests on the direct path unless a test opts in.
  return dataclasses.replace(get_settings(), apns_private_key=private_key_pem, proxy_enabled=False, proxy_url=None, proxy_secret=None, auth_user=None, auth_password=None, register_enabled=True, relay_enabled=True, max_batch_push_count=-1, allowed_origins=())


@pytest.fixture
def upstream_requests() -> list[httpx.Request]:
  return []


@pytest.fixture
def make_client(settings, credential_cache, token_store, upstream_requests):
  """Build a TestClient whose APNs and relay traffic is answered by `handler`."""

  def _make(handler=None, *, settings_override: Settings | None = None) -> TestClient:
    active_settings = settings_override or settings

    def _record(request: httpx.Request) -> httpx.Response:
      upstream_requests.append(request)
      if handler is None:
        return httpx.Response(200, headers={"apns-id": "test-apns-id"})
      return handler(request)

    transport = httpx.MockTransport(_record)

    app = create_app(active_settings)
    app.dependency_overrides[get_settings] = lambda: active_settings
    app.dependency_overrides[get_credential_cache] = lambda: credential_cache
    app.dependency_overrides[get_token_store] = lambda: token_store
    app.dependency_overrides[get_apns_client] = lambda: ApnsClient(config=build_apns_config(active_settings), credentials=credential_cache, proxy_secret=active_settings.proxy_secret, transport=transport)
    app.dependency_overrides[get_relay] = lambda: ApnsRelay(upstream_host=active_settings.apns_host, transport=transport)
    return TestClient(app)

  return _make
