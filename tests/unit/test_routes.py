from __future__ import annotations

import base64
import dataclasses
import json

import httpx
import pytest

TEST_DEVICE_TOKEN = "a" * 64


def _basic(user: str, password: str) -> dict[str, str]:
  return {"Authorization": "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()}


def test_ping_healthz_and_info(make_client):
  client = make_client()

  ping = client.get("/ping")
  assert ping.status_code == 200
  assert ping.json()["code"] == 200
  assert ping.json()["message"] == "success"
  assert isinstance(ping.json()["timestamp"], int)

  healthz = client.get("/healthz")
  assert healthz.text == "ok"

  info = client.get("/info").json()
  assert info["devices"] == 1
  assert set(info) == {"version", "arch", "commit", "devices"}


def test_v2_single_push(make_client, upstream_requests):
  response = make_client().post("/push", json={"device_key": "alias-a", "title": "Hi", "body": "there", "group": "g"})

  assert response.status_code == 200
  assert response.json()["message"] == "success"
  sent = upstream_requests[0]
  assert sent.url.path == f"/3/device/{TEST_DEVICE_TOKEN}"
  payload = json.loads(sent.content)
  assert payload["aps"]["alert"] == {"body": "there", "title": "Hi"}
  assert payload["aps"]["thread-id"] == "g"


def test_v2_get_push_uses_query(make_client, upstream_requests):
  response = make_client().get("/push", params={"device_key": "alias-a", "body": "from query"})
  assert response.status_code == 200
  assert json.loads(upstream_requests[0].content)["aps"]["alert"] == {"body": "from query"}


def test_v2_failure_uses_outcome_status(make_client):
  response = make_client().post("/push", json={"device_key": "nobody", "body": "b"})
  assert response.status_code == 400
  assert response.json()["message"] == "device token not found"


def test_v2_bad_json_is_a_bind_failure(make_client):
  response = make_client().post("/push", content=b"{oops", headers={"content-type": "application/json"})
  assert response.status_code == 400
  assert response.json()["message"] == "request bind failed"


def test_v2_batch_reports_each_alias(make_client, token_store):
  def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("b" * 64):
      return httpx.Response(410, json={"reason": "Unregistered"})
    return httpx.Response(200)

  client = make_client(handler)
  assert client.post("/register", json={"device_key": "alias-b", "device_token": "b" * 64}).status_code == 200
  response = client.post("/push", json={"device_keys": ["alias-a", "alias-b"], "body": "hello"})

  assert response.status_code == 200
  assert response.json()["data"] == [{"code": 200, "device_key": "alias-a"}, {"code": 410, "device_key": "alias-b", "message": "Unregistered"}]
  assert token_store.raw("alias-b") == ""


def test_v2_batch_limit(make_client, settings, upstream_requests):
  limited = dataclasses.replace(settings, max_batch_push_count=5)
  response = make_client(settings_override=limited).post("/push", json={"device_keys": ",".join(f"k{i}" for i in range(6)), "body": "b"})

  assert response.status_code == 400
  assert response.json()["message"] == "batch push count exceeds the maximum limit: 5"
  assert upstream_requests == []


def test_v2_invalid_device_keys_type(make_client):
  response = make_client().post("/push", json={"device_keys": {"a": 1}, "body": "b"})
  assert response.status_code == 400
  assert response.json()["message"] == "invalid type for device_keys"


@pytest.mark.parametrize(
  ("path", "alert"),
  [
    ("/alias-a", {"body": "Empty Message"}),
    ("/alias-a/hello", {"body": "hello"}),
    ("/alias-a/Title/hello%20world", {"title": "Title", "body": "hello world"}),
    ("/alias-a/T/S/B", {"title": "T", "subtitle": "S", "body": "B"}),
  ],
)
def test_v1_routes(make_client, upstream_requests, path, alert):
  response = make_client().get(path)
  assert response.status_code == 200
  assert json.loads(upstream_requests[0].content)["aps"]["alert"] == alert


def test_v1_query_fills_gaps_but_path_wins(make_client, upstream_requests):
  response = make_client().post("/alias-a/path-body?body=query-body&group=q", data={"group": "form", "url": "https://e.x"})
  assert response.status_code == 200
  payload = json.loads(upstream_requests[0].content)
  assert payload["aps"]["alert"]["body"] == "path-body"
  assert payload["aps"]["thread-id"] == "q"
  assert payload["url"] == "https://e.x"


@pytest.mark.parametrize("path", ["/", "/favicon.ico", "/robots.txt"])
def test_v1_reserved_paths_are_not_found(make_client, upstream_requests, path):
  response = make_client().get(path)
  assert response.status_code == 404
  assert upstream_requests == []


def test_basic_auth_guards_push_routes(make_client, settings):
  guarded = dataclasses.replace(settings, auth_user="admin", auth_password="pw")
  client = make_client(settings_override=guarded)

  denied = client.post("/push", json={"device_key": "alias-a", "body": "b"})
  assert denied.status_code == 401
  assert denied.headers["www-authenticate"] == "Basic"
  assert denied.json()["message"] == "Unauthorized"

  assert client.get("/alias-a/b", headers=_basic("admin", "wrong")).status_code == 401
  assert client.get("/alias-a/b", headers=_basic("admin", "pw")).status_code == 200
  # Liveness stays open.
  assert client.get("/ping").status_code == 200


def test_register_and_check(make_client, token_store):
  client = make_client()
  response = client.post("/register", json={"key": "new-alias", "devicetoken": "f" * 64})

  assert response.status_code == 200
  assert response.json()["data"] == {"key": "new-alias", "device_key": "new-alias", "device_token": "f" * 64}
  assert token_store.raw("new-alias") == "f" * 64
  assert client.get("/register/new-alias").status_code == 200
  assert client.get("/register/unknown").status_code == 404


def test_register_generates_key_when_blank(make_client):
  data = make_client().post("/register", data={"device_token": "e" * 64}).json()["data"]
  assert len(data["device_key"]) == 22
  assert data["key"] == data["device_key"]


def test_legacy_get_register(make_client):
  client = make_client()
  assert client.get("/register", params={"device_key": "legacy", "device_token": "d" * 64}).status_code == 200
  assert client.get("/register").status_code == 404


@pytest.mark.parametrize(("token", "message"), [("", "device token is empty"), ("x" * 129, "device token is too long (max 128 characters)")])
def test_register_rejects_bad_tokens(make_client, token, message):
  response = make_client().post("/register", json={"device_key": "k", "device_token": token})
  assert response.status_code == 400
  assert response.json()["message"] == message


def test_register_disabled_still_allows_checks(make_client, settings):
  client = make_client(settings_override=dataclasses.replace(settings, register_enabled=False))
  response = client.post("/register", json={"device_key": "k", "device_token": "a" * 64})
  assert response.status_code == 403
  assert response.json()["message"] == "Registration is disabled"
  assert client.get("/register/alias-a").status_code == 200


def test_relay_route_forwards_upstream(make_client, settings, upstream_requests):
  secured = dataclasses.replace(settings, proxy_secret="s3cret")

  def handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"apns-id": "relayed"})

  client = make_client(handler, settings_override=secured)
  response = client.post(f"/apns-proxy/3/device/{TEST_DEVICE_TOKEN}", content=b'{"aps":{}}', headers={"x-apns-proxy-auth": "s3cret", "authorization": "bearer t"})

  assert response.status_code == 200
  assert response.headers["apns-id"] == "relayed"
  assert str(upstream_requests[0].url) == f"https://api.push.apple.com/3/device/{TEST_DEVICE_TOKEN}"
  assert "x-apns-proxy-auth" not in upstream_requests[0].headers


def test_relay_route_rejects_wrong_secret(make_client, settings, upstream_requests):
  client = make_client(settings_override=dataclasses.replace(settings, proxy_secret="s3cret"))
  response = client.post("/apns-proxy/3/device/abc", content=b"{}", headers={"x-apns-proxy-auth": "nope"})
  assert response.status_code == 401
  assert response.json() == {"reason": "Unauthorized"}
  assert upstream_requests == []


def test_relay_route_reports_upstream_failure(make_client):
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("unreachable", request=request)

  response = make_client(handler).post("/apns-proxy/3/device/abc", content=b"{}")
  assert response.status_code == 500
  assert "unreachable" in response.json()["reason"]


def test_push_through_co_hosted_relay(make_client, settings, upstream_requests):
  proxied = dataclasses.replace(settings, proxy_enabled=True, proxy_secret="s3cret")
  response = make_client(settings_override=proxied).post("/push", json={"device_key": "alias-a", "body": "b"})

  assert response.status_code == 200
  first = upstream_requests[0]
  assert str(first.url) == f"http://testserver/apns-proxy/3/device/{TEST_DEVICE_TOKEN}"
  assert first.headers["x-apns-proxy-auth"] == "s3cret"
