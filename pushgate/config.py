"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pushgate.utils.env import load_env_file, resolve_env_path

load_env_file(resolve_env_path())

APNS_HOST_PRODUCTION = "https://api.push.apple.com"
APNS_HOST_DEVELOPMENT = "https://api.sandbox.push.apple.com"

DEFAULT_APNS_TOPIC = "me.fin.bark"
DEFAULT_APNS_KEY_ID = "LH4T9V5U4R"
DEFAULT_APNS_TEAM_ID = "5U8LBRXG3A"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the push gateway."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  apns_topic: str
  apns_key_id: str
  apns_team_id: str
  apns_private_key: str | None
  apns_use_sandbox: bool
  apns_timeout_seconds: float | None
  proxy_enabled: bool
  proxy_url: str | None
  proxy_secret: str | None
  relay_enabled: bool
  max_batch_push_count: int
  register_enabled: bool
  auth_user: str | None
  auth_password: str | None
  pg_dsn: str | None

  @property
  def apns_host(self) -> str:
    """Return the upstream base URL for the configured environment."""
    return APNS_HOST_DEVELOPMENT if self.apns_use_sandbox else APNS_HOST_PRODUCTION

  @property
  def basic_auth_enabled(self) -> bool:
    """Basic auth applies only when both halves of the credential are set."""
    return bool(self.auth_user and self.auth_password)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("PUSHGATE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_enabled_flag(raw: str | None) -> bool:
  """Parse a default-on toggle that is only disabled by an explicit `0` or `false`."""
  if raw is None:
    return True

  return raw.strip().lower() not in {"0", "false"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_optional_float(raw: str | None, *, name: str) -> float | None:
  if raw is None or raw.strip() == "":
    return None

  value = float(raw)

  if value <= 0:
    raise ValueError(f"{name} must be positive when provided.")

  return value


def _load_private_key() -> str | None:
  """Resolve the APNs signing key from inline PEM contents or a key file path."""
  inline_key = _optional_str(os.getenv("APNS_PRIVATE_KEY"))
  if inline_key:
    # Single-line env files carry the PEM with escaped newlines.
    return inline_key.replace("\\n", "\n")

  key_path = _optional_str(os.getenv("APNS_PRIVATE_KEY_PATH"))
  if key_path is None:
    return None

  path = Path(key_path).expanduser()
  if not path.is_file():
    raise ValueError(f"APNS_PRIVATE_KEY_PATH does not point to a file: {key_path}")

  return path.read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("PUSHGATE_ENV", "development").lower()
  debug = _parse_bool(os.getenv("PUSHGATE_DEBUG"))

  log_max_bytes = int(os.getenv("PUSHGATE_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("PUSHGATE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("PUSHGATE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("PUSHGATE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # A non-positive batch limit means batches are unbounded.
  max_batch_push_count = int(os.getenv("MAX_BATCH_PUSH_COUNT", "-1"))

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("PUSHGATE_ALLOWED_ORIGINS")),
    log_dir=(os.getenv("PUSHGATE_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("PUSHGATE_LOG_HTTP_4XX")),
    apns_topic=_optional_str(os.getenv("APNS_TOPIC")) or DEFAULT_APNS_TOPIC,
    apns_key_id=_optional_str(os.getenv("APNS_KEY_ID")) or DEFAULT_APNS_KEY_ID,
    apns_team_id=_optional_str(os.getenv("APNS_TEAM_ID")) or DEFAULT_APNS_TEAM_ID,
    apns_private_key=_load_private_key(),
    apns_use_sandbox=(os.getenv("APNS_USE_SANDBOX") or "").strip().lower() == "true",
    apns_timeout_seconds=_parse_optional_float(os.getenv("APNS_TIMEOUT_SECONDS"), name="APNS_TIMEOUT_SECONDS"),
    proxy_enabled=_parse_enabled_flag(os.getenv("ENABLE_APN_PROXY")),
    proxy_url=_optional_str(os.getenv("APNS_PROXY_URL")),
    proxy_secret=_optional_str(os.getenv("APNS_PROXY_SECRET")),
    relay_enabled=_parse_enabled_flag(os.getenv("ENABLE_RELAY")),
    max_batch_push_count=max_batch_push_count,
    register_enabled=_parse_enabled_flag(os.getenv("ENABLE_REGISTER")),
    auth_user=_optional_str(os.getenv("BARK_AUTH_USER")),
    auth_password=_optional_str(os.getenv("BARK_AUTH_PASSWORD")),
    pg_dsn=os.getenv("PUSHGATE_PG_DSN") or os.getenv("DATABASE_URL"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the APNs configuration."""
  debug = _parse_bool(os.getenv("PUSHGATE_DEBUG"))
  # Support fallback to DATABASE_URL for hosted Postgres providers.
  pg_dsn = os.getenv("PUSHGATE_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn)
