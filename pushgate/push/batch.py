"""Fan a multi-recipient push out into concurrent single deliveries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pushgate.apns.contracts import PushGatewayError
from pushgate.push.service import PushResult, PushService

logger = logging.getLogger(__name__)


class InvalidDeviceKeysError(PushGatewayError, ValueError):
  """Raised when `device_keys` is neither a list nor a comma-separated string."""


class BatchLimitExceededError(PushGatewayError):
  """Raised when a batch names more aliases than the configured maximum."""

  def __init__(self, limit: int) -> None:
    super().__init__(f"batch push count exceeds the maximum limit: {limit}")
    self.limit = limit


@dataclass(frozen=True)
class BatchItemResult:
  """Per-alias outcome within a batch response."""

  device_key: str
  code: int
  message: str | None = None

  def to_dict(self) -> dict[str, Any]:
    item: dict[str, Any] = {"code": self.code, "device_key": self.device_key}
    if self.message:
      item["message"] = self.message
    return item


def parse_device_keys(raw: Any) -> list[str]:
  """Split `device_keys` from a comma-separated string or a list, dropping blanks."""
  if isinstance(raw, str):
    candidates = raw.split(",")
  elif isinstance(raw, list | tuple):
    candidates = [str(item) for item in raw]
  else:
    raise InvalidDeviceKeysError("invalid type for device_keys")

  return [key.strip() for key in candidates if key.strip()]


class BatchDispatcher:
  """Run one delivery per alias concurrently and collect results in input order."""

  def __init__(self, service: PushService, *, max_batch_count: int = -1) -> None:
    self._service = service
    self._max_batch_count = max_batch_count

  def check_limit(self, device_keys: Sequence[str]) -> None:
    """Reject the whole batch before any delivery when it exceeds the limit."""
    if self._max_batch_count > 0 and len(device_keys) > self._max_batch_count:
      raise BatchLimitExceededError(self._max_batch_count)

  async def dispatch(self, device_keys: Sequence[str], params: Mapping[str, Any], *, request_base_url: str | None = None) -> list[BatchItemResult]:
    """Deliver `params` to every alias; one failure never affects its siblings."""
    self.check_limit(device_keys)

    shared_params = {key: value for key, value in params.items() if key != "device_keys"}
    results = await asyncio.gather(*(self._push_one(device_key, shared_params, request_base_url) for device_key in device_keys), return_exceptions=True)

    items: list[BatchItemResult] = []
    for device_key, result in zip(device_keys, results, strict=True):
      if isinstance(result, BaseException):
        # The service reports failures as results; anything raised here is unexpected.
        logger.error("Batch push raised device_key=%s error=%s", device_key, result, exc_info=result)
        items.append(BatchItemResult(device_key=device_key, code=500, message=str(result) or type(result).__name__))
        continue
      items.append(BatchItemResult(device_key=device_key, code=result.code, message=result.error))

    delivered = sum(1 for item in items if item.code == 200)
    logger.info("Batch push finished total=%s delivered=%s", len(items), delivered)
    return items

  async def _push_one(self, device_key: str, params: Mapping[str, Any], request_base_url: str | None) -> PushResult:
    return await self._service.execute_push({**params, "device_key": device_key}, request_base_url=request_base_url)
