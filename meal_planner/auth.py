from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

JWKS_TTL_SECONDS = 600

_http = httpx.Client(timeout=5)
_bearer = HTTPBearer(auto_error=False)


class JWKSCache:
    """Signing keys per issuer, refetched after ``ttl`` seconds or on demand."""

    def __init__(self, ttl: float = JWKS_TTL_SECONDS) -> None:
        self.ttl = ttl
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._url: Optional[str] = None
        self._expires_at: float = 0.0

    def _refresh(self, url: str) -> None:
        resp = _http.get(url)
        resp.raise_for_status()
        self._keys = {key.get("kid"): key for key in resp.json().get("keys", [])}
        self._url = url
        self._expires_at = time.time() + self.ttl

    def find(self, url: str, kid: Optional[str]) -> Optional[Dict[str, Any]]:
        if url != self._url or time.time() >= self._expires_at:
            self._refresh(url)
        elif kid not in self._keys:
            # Issuer may have rotated keys since the last fetch.
            logger.info("Unknown signing key kid=%s; refreshing JWKS", kid)
            self._refresh(url)
        return self._keys.get(kid)


_jwks_cache = JWKSCache()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _claims_unverified(token: str) -> Dict[str, Any]:
    # Dev mode only; startup refuses this outside dev.
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {e}")


def _claims_from_secret(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            options={"verify_aud": bool(settings.auth_audience)},
        )
    except JWTError as e:
        raise _unauthorized(f"JWT verification failed: {e}")


def _claims_from_jwks(token: str, settings: Settings) -> Dict[str, Any]:
    if not settings.auth_issuer:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Auth issuer not configured")
    jwks_url = settings.auth_jwks_url or settings.auth_issuer.rstrip("/") + "/.well-known/jwks.json"
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {e}")
    try:
        key = _jwks_cache.find(jwks_url, kid)
    except httpx.HTTPError as e:
        logger.error("Fetching JWKS failed url=%s error=%s", jwks_url, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth keys unavailable")
    if not key:
        raise _unauthorized("Signing key not found")
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[key.get("alg", "RS256")],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
    except JWTError as e:
        raise _unauthorized(f"JWT verification failed: {e}")


def _verify_jwt(token: str) -> Dict[str, Any]:
    settings = get_settings()
    if settings.auth_disable_verification:
        return _claims_unverified(token)
    if settings.auth_jwt_secret:
        return _claims_from_secret(token, settings)
    return _claims_from_jwks(token, settings)


def get_current_principal(creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Dict[str, Any]:
    """Resolve the caller from a bearer JWT; every route requires one."""
    if not creds or creds.scheme.lower() != "bearer":
        raise _unauthorized("Unauthorized")
    claims = _verify_jwt(creds.credentials)
    if not claims.get("sub"):
        raise _unauthorized("Invalid token: no sub")
    return {
        "sub": claims["sub"],
        "email": claims.get("email") or claims.get("email_address"),
        "claims": claims,
    }
