import logging
import time
from typing import Any

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("pushgate.core.middleware")


def _build_request_url(scope: Scope) -> str:
  """Build the request path for logging, leaving the query string out."""
  # Query strings on push routes carry message text and device keys.
  return scope.get("path", "")


class RequestLoggingMiddleware:
  """Log request method, path, status and latency without touching bodies."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    # Skip non-HTTP scopes to avoid interfering with websocket or lifespan events.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.debug("Incoming request %s %s", method, url)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      process_time = (time.time() - start_time) * 1000
      logger.info("%s %s status=%s (took %.2fms)", method, url, status_code or 0, process_time)
