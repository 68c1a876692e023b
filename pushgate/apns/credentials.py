"""Provider token signing and caching for APNs token-based authentication.

APNs accepts an ES256 JWT signed with the team's P8 key and rejects tokens
older than one hour. Tokens are cached and regenerated after 50 minutes.

The cache is not guarded by a lock. Signing is synchronous, so concurrent
coroutines on one event loop cannot interleave inside a refresh; separate
worker processes each hold their own token, which the upstream tolerates.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from pushgate.apns.contracts import CredentialError

logger = logging.getLogger(__name__)

TOKEN_VALIDITY_SECONDS = 50 * 60
PROVIDER_TOKEN_ALGORITHM = "ES256"


def load_signing_key(private_key_pem: str) -> ec.EllipticCurvePrivateKey:
  """Load a PKCS#8 P-256 private key from PEM text."""
  try:
    key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
  except (ValueError, TypeError) as exc:
    raise CredentialError(f"Invalid APNs private key: {exc}") from exc

  if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
    raise CredentialError("APNs private key must be an EC P-256 key.")

  return key


class ProviderTokenSigner:
  """Produce ES256 provider tokens for one (key id, team id, key) triple."""

  def __init__(self, *, key_id: str, team_id: str, private_key: str | None) -> None:
    self.key_id = key_id
    self.team_id = team_id
    self._private_key_pem = private_key
    self._signing_key: ec.EllipticCurvePrivateKey | None = None

  def _key(self) -> ec.EllipticCurvePrivateKey:
    if self._signing_key is None:
      if not self._private_key_pem:
        raise CredentialError("APNs private key is not configured.")
      self._signing_key = load_signing_key(self._private_key_pem)
    return self._signing_key

  def sign(self, *, issued_at: int) -> str:
    """Return a JWT carrying `iss`/`iat` claims and the `kid` header APNs expects."""
    try:
      return jwt.encode({"iss": self.team_id, "iat": issued_at}, self._key(), algorithm=PROVIDER_TOKEN_ALGORITHM, headers={"kid": self.key_id})
    except jwt.PyJWTError as exc:
      raise CredentialError(f"Failed to sign APNs provider token: {exc}") from exc


class CredentialCache:
  """Hold at most one live provider token and regenerate it on expiry."""

  def __init__(self, signer: ProviderTokenSigner, *, validity_seconds: float = TOKEN_VALIDITY_SECONDS, clock: Callable[[], float] = time.time) -> None:
    self._signer = signer
    self._validity_seconds = validity_seconds
    self._clock = clock
    self._token: str | None = None
    self._expires_at = 0.0

  def get_token(self, *, force_refresh: bool = False) -> str:
    """Return the cached token while valid, otherwise sign and store a new one."""
    now = self._clock()
    if not force_refresh and self._token is not None and now < self._expires_at:
      return self._token

    token = self._signer.sign(issued_at=int(now))
    self._token = token
    self._expires_at = now + self._validity_seconds
    logger.debug("Generated APNs provider token key_id=%s expires_in=%ss", self._signer.key_id, int(self._validity_seconds))
    return token

  def force_get(self) -> str:
    """Regenerate the token regardless of the cached entry."""
    return self.get_token(force_refresh=True)

  def clear(self) -> None:
    """Discard the cached token so the next call signs a fresh one."""
    self._token = None
    self._expires_at = 0.0

  @property
  def expires_at(self) -> float:
    """Return the epoch time after which the cached token is no longer used."""
    return self._expires_at
