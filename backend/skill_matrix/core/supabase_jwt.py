import logging
import time
from typing import Any

import jwt
import requests
from jwt import InvalidTokenError

from skill_matrix.core.config import settings

logger = logging.getLogger(__name__)

# Supabase signs with ES256 on new projects and RS256 on older ones
ALLOWED_ALGORITHMS = ["ES256", "RS256"]


class _JWKSCache:
    """In-memory JWKS cache keyed by 'kid'."""

    def __init__(self, jwks_url: str, ttl_seconds: int) -> None:
        self._jwks_url = jwks_url
        self._ttl = ttl_seconds
        self._kid_to_key: dict[str, jwt.PyJWK] = {}
        self._fetched_at: float = 0.0

    def _refresh(self) -> None:
        resp = requests.get(self._jwks_url, timeout=5)
        resp.raise_for_status()
        self._kid_to_key = {}
        for raw_key in resp.json().get("keys", []):
            kid = raw_key.get("kid")
            if not kid:
                continue
            try:
                self._kid_to_key[kid] = jwt.PyJWK(raw_key)
            except jwt.PyJWKError as e:
                logger.warning("Skipping unusable JWK kid=%s: %s", kid, e)
        self._fetched_at = time.time()
        logger.debug("JWKS cache refreshed; %d keys loaded", len(self._kid_to_key))

    def get_key_for_token(self, token: str) -> jwt.PyJWK:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid JWT header: {e}") from e

        if (time.time() - self._fetched_at) > self._ttl or not self._kid_to_key:
            self._refresh()

        if kid:
            key = self._kid_to_key.get(kid)
            if key is None:
                # Keys may have been rotated since the last fetch
                self._refresh()
                key = self._kid_to_key.get(kid)
            if key is None:
                raise InvalidTokenError("No matching JWK for token kid")
            return key

        if not self._kid_to_key:
            raise InvalidTokenError("No JWKs available to verify token")
        return next(iter(self._kid_to_key.values()))


_jwks_cache: _JWKSCache | None = None


def _get_cache() -> _JWKSCache:
    global _jwks_cache
    jwks_url = settings.SUPABASE_JWKS_URL
    if not jwks_url:
        raise RuntimeError("SUPABASE_JWKS_URL is not configured")
    if _jwks_cache is None:
        _jwks_cache = _JWKSCache(
            jwks_url=jwks_url, ttl_seconds=settings.SUPABASE_JWKS_CACHE_SECONDS
        )
    return _jwks_cache


def verify_token(token: str) -> dict[str, Any]:
    """Verify a Supabase access token against the project JWKS.

    Checks signature, expiry and, when configured, the audience claim.
    Returns the decoded payload; the ``sub`` claim is the auth user id.
    """
    try:
        key = _get_cache().get_key_for_token(token)
    except requests.RequestException as e:
        # Normalize JWKS fetch failures for callers
        raise InvalidTokenError(f"Unable to fetch JWKS: {e}") from e

    audience = settings.SUPABASE_JWT_AUDIENCE
    return jwt.decode(
        token,
        key=key.key,
        algorithms=ALLOWED_ALGORITHMS,
        audience=audience,
        options={"verify_aud": audience is not None},
    )
