"""Seed the process environment from a local `.env` file before settings are read.

The file carries the same variables `pushgate.config` reads from the real
environment: the APNs identity (`APNS_TOPIC`, `APNS_KEY_ID`, `APNS_TEAM_ID`,
`APNS_PRIVATE_KEY` or `APNS_PRIVATE_KEY_PATH`), the `ENABLE_*` toggles,
`BARK_AUTH_USER`/`BARK_AUTH_PASSWORD` and `PUSHGATE_PG_DSN`. Values already
present in the environment win unless `override` is set.

`PUSHGATE_ENV_FILE` selects another file, e.g. a mounted secret in a container.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_FILE_VARIABLE = "PUSHGATE_ENV_FILE"
_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def resolve_env_path(environ: Mapping[str, str] | None = None) -> Path:
  """Return the file named by `PUSHGATE_ENV_FILE`, else `.env` at the project root."""
  source = os.environ if environ is None else environ
  configured = (source.get(ENV_FILE_VARIABLE) or "").strip()
  if configured:
    return Path(configured).expanduser()
  return _PROJECT_ROOT / ".env"


def parse_env_line(line: str) -> tuple[str, str] | None:
  """Split one `.env` line into `(name, value)`; blanks, comments and junk give `None`.

  Quoted values are taken verbatim between the quotes, so a PEM with escaped
  `\\n` sequences survives intact. Unquoted values drop a trailing ` # comment`.
  """
  stripped = line.strip()
  if not stripped or stripped.startswith("#"):
    return None

  stripped = stripped.removeprefix("export ").lstrip()
  name, separator, value = stripped.partition("=")
  name = name.strip()
  if not separator or not name:
    return None

  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return name, value[1:-1]

  comment_at = value.find(" #")
  if comment_at != -1:
    value = value[:comment_at].rstrip()
  return name, value


def load_env_file(path: Path | None = None, *, override: bool = False) -> list[str]:
  """Export the file's variables into `os.environ` and return the names that were set."""
  env_path = path or resolve_env_path()
  if not env_path.is_file():
    return []

  applied: list[str] = []
  for line in env_path.read_text(encoding="utf-8").splitlines():
    entry = parse_env_line(line)
    if entry is None:
      continue
    name, value = entry
    if name in os.environ and not override:
      continue
    os.environ[name] = value
    applied.append(name)

  logger.debug("Loaded %s variable(s) from %s", len(applied), env_path)
  return applied
