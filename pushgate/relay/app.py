"""Standalone relay app for deployments that run the relay apart from the gateway."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from pushgate.api.routes import relay
from pushgate.config import get_settings
from pushgate.core.logging import _initialize_logging
from pushgate.relay.service import RELAY_PREFIX


@asynccontextmanager
async def relay_lifespan(app: FastAPI):
  _initialize_logging(get_settings())
  yield


def create_relay_app() -> FastAPI:
  """Build an app that serves only the relay, at the root and under its prefix."""
  relay_app = FastAPI(title="pushgate relay", lifespan=relay_lifespan, docs_url=None, redoc_url=None, openapi_url=None)
  relay_app.include_router(relay.router, prefix=RELAY_PREFIX)
  relay_app.include_router(relay.router)
  return relay_app


app = create_relay_app()
