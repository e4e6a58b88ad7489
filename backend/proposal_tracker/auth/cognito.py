from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from cachetools import TTLCache
from jose import JOSEError, jwt

from ..errors import AuthenticationError
from ..settings import settings


@dataclass
class VerifiedUser:
    sub: str
    username: str
    email: str | None
    claims: dict[str, Any]

    @property
    def role_claim(self) -> str | None:
        raw = self.claims.get("custom:role") or self.claims.get("role")
        return str(raw) if raw else None

    @property
    def display_name(self) -> str:
        return str(self.claims.get("name") or "").strip() or self.username or (self.email or self.sub)


_JWKS_CACHE: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=4, ttl=60 * 60)


def _issuer() -> str:
    if not settings.cognito_user_pool_id:
        raise RuntimeError("COGNITO_USER_POOL_ID is not set")
    region = settings.cognito_region or settings.aws_region
    return f"https://cognito-idp.{region}.amazonaws.com/{settings.cognito_user_pool_id}"


def _jwks_url() -> str:
    return f"{_issuer()}/.well-known/jwks.json"


def _get_jwks() -> dict[str, Any]:
    url = _jwks_url()
    cached = _JWKS_CACHE.get(url)
    if cached:
        return cached

    with httpx.Client(timeout=10.0) as client:
        resp = client.get(url)
        resp.raise_for_status()
        jwks = resp.json()

    _JWKS_CACHE[url] = jwks
    return jwks


def verify_bearer_token(token: str) -> VerifiedUser:
    """Verify a Cognito ID/access token; raises AuthenticationError on any failure."""
    if not token:
        raise AuthenticationError("Missing token")
    if not settings.cognito_client_id:
        raise RuntimeError("COGNITO_CLIENT_ID is not set")

    try:
        claims = jwt.decode(
            token,
            _get_jwks(),
            algorithms=["RS256"],
            audience=settings.cognito_client_id,
            issuer=_issuer(),
            options={"verify_aud": True, "verify_iss": True},
        )
    except JOSEError as e:
        raise AuthenticationError("Invalid or expired token") from e

    token_use = claims.get("token_use")
    if token_use and token_use not in ("id", "access"):
        raise AuthenticationError("Invalid token_use")

    sub = str(claims.get("sub") or "")
    if not sub:
        raise AuthenticationError("Token has no subject")

    email = claims.get("email")
    if email is not None:
        email = str(email)

    username = (
        str(claims.get("preferred_username") or "").strip()
        or str(claims.get("cognito:username") or "").strip()
        or (email or "")
    )

    return VerifiedUser(sub=sub, username=username, email=email, claims=claims)
