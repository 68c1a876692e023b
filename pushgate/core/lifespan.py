import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from pushgate.core.database import create_tables, dispose_engine
from pushgate.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the token table on startup; release connections on shutdown."""
  from pushgate.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("pushgate.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting pushgate environment=%s apns_host=%s relay_enabled=%s", settings.environment, settings.apns_host, settings.relay_enabled)
  if not settings.apns_private_key:
    logger.warning("APNS_PRIVATE_KEY is not configured; deliveries will fail until it is set.")

  if settings.pg_dsn:
    logger.info("Using Postgres token store dsn=%s", _redact_dsn(settings.pg_dsn))
    await create_tables()

  try:
    yield
  finally:
    await dispose_engine()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
