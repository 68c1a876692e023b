from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from pushgate.core.exceptions import _coerce_json_safe, _sanitize_validation_errors, global_exception_handler, http_exception_handler


def _app() -> FastAPI:
  app = FastAPI()
  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(HTTPException, http_exception_handler)

  @app.get("/boom")
  async def boom() -> None:
    raise RuntimeError("secret internals")

  @app.get("/teapot")
  async def teapot() -> None:
    raise HTTPException(status_code=418, detail="short and stout", headers={"x-kind": "teapot"})

  return app


def test_unhandled_errors_render_generic_envelope():
  response = TestClient(_app(), raise_server_exceptions=False).get("/boom")
  assert response.status_code == 500
  body = response.json()
  assert body["code"] == 500
  assert body["message"] == "Internal Server Error"
  assert "secret" not in response.text


def test_http_exceptions_keep_detail_and_headers():
  response = TestClient(_app()).get("/teapot")
  assert response.status_code == 418
  assert response.json()["message"] == "short and stout"
  assert response.headers["x-kind"] == "teapot"


def test_validation_errors_drop_raw_input():
  errors = [{"loc": ("body", "x"), "msg": "bad", "input": {"password": "p"}, "ctx": {"error": ValueError("nope"), "input": "p"}}]
  assert _sanitize_validation_errors(errors) == [{"loc": ["body", "x"], "msg": "bad", "ctx": {"error": "ValueError: nope"}}]
  assert _coerce_json_safe({1: (1, 2)}) == {"1": [1, 2]}
