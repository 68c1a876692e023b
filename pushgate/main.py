from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from pushgate import __version__
from pushgate.api.routes import misc, push, register, relay
from pushgate.config import Settings, get_settings
from pushgate.core.exceptions import global_exception_handler, http_exception_handler, request_validation_exception_handler
from pushgate.core.lifespan import lifespan
from pushgate.core.middleware import RequestLoggingMiddleware
from pushgate.relay.service import RELAY_PREFIX


def create_app(settings: Settings | None = None) -> FastAPI:
  """Assemble the gateway app; route toggles are read from `settings`."""
  settings = settings or get_settings()
  application = FastAPI(title="pushgate", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

  if settings.allowed_origins:
    application.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"])

  application.add_exception_handler(Exception, global_exception_handler)
  application.add_exception_handler(HTTPException, http_exception_handler)
  application.add_exception_handler(RequestValidationError, request_validation_exception_handler)

  application.add_middleware(RequestLoggingMiddleware)

  application.include_router(misc.router, tags=["misc"])
  application.include_router(register.router, tags=["register"])
  application.include_router(push.router, tags=["push"])
  if settings.relay_enabled:
    application.include_router(relay.router, prefix=RELAY_PREFIX, tags=["relay"])
  # The V1 catch-all matches every path, so it must be registered last.
  application.include_router(push.v1_router, tags=["push"])
  return application


app = create_app()
