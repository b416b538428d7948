"""Identity providers used by the submit step."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, List, Mapping, Optional, Union

import jwt
import requests

from ..config import AuthConfig
from ..errors import AuthenticationRequired
from .base import Identity, IdentityProvider

logger = logging.getLogger(__name__)

TokenSource = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]

JWKS_CACHE_SECONDS = 300


class StaticIdentityProvider(IdentityProvider):
    """Always returns the same identity; ``None`` means signed out."""

    def __init__(self, user_id: Optional[str], token: Optional[str] = None) -> None:
        self.user_id = user_id
        self.token = token

    async def get_identity(self) -> Identity:
        if not self.user_id:
            raise AuthenticationRequired()
        return Identity(user_id=self.user_id, token=self.token)


class JwksConfig:
    def __init__(
        self, jwks_url: str, audience: str = "", issuer: str = "", leeway: int = 0
    ) -> None:
        self.jwks_url = jwks_url
        self.audience = audience
        self.issuer = issuer
        self.leeway = leeway

    @classmethod
    def from_config(cls, config: AuthConfig) -> "JwksConfig":
        return cls(
            jwks_url=config.jwks_url,
            audience=config.audience,
            issuer=config.issuer,
            leeway=config.leeway,
        )

    @classmethod
    def from_env(cls) -> "JwksConfig":
        return cls(
            jwks_url=os.getenv("CHATFLOW_JWKS_URL", ""),
            audience=os.getenv("CHATFLOW_JWT_AUDIENCE", ""),
            issuer=os.getenv("CHATFLOW_JWT_ISSUER", ""),
            leeway=int(os.getenv("CHATFLOW_JWT_LEEWAY", "30")),
        )


class JwtVerifier:
    """Validates bearer tokens against keys published at a JWKS endpoint."""

    def __init__(self, config: Optional[JwksConfig] = None) -> None:
        self.config = config or JwksConfig.from_env()
        self._jwks_cache: List[Mapping] = []
        self._last_fetch: float = 0

    def _fetch_jwks(self) -> None:
        resp = requests.get(self.config.jwks_url, timeout=5)
        resp.raise_for_status()
        self._jwks_cache = resp.json().get("keys", [])
        self._last_fetch = time.time()

    def verify_token(self, token: str) -> Mapping:
        """Validate JWT using configured JWKS and return its claims."""
        now = time.time()
        if not self._jwks_cache or now - self._last_fetch > JWKS_CACHE_SECONDS:
            self._fetch_jwks()

        header = jwt.get_unverified_header(token)
        for key in self._jwks_cache:
            if key.get("kid") == header.get("kid"):
                return jwt.decode(
                    token,
                    jwt.algorithms.RSAAlgorithm.from_jwk(key),
                    audience=self.config.audience or None,
                    issuer=self.config.issuer or None,
                    leeway=self.config.leeway,
                    algorithms=[header.get("alg", "RS256")],
                )
        raise jwt.exceptions.InvalidSignatureError("No matching JWK found.")


class JwtIdentityProvider(IdentityProvider):
    """Reads the caller's bearer token from ``token_source`` and verifies it.

    The ``sub`` claim becomes the user id. A missing token, an invalid one,
    or an unreachable JWKS endpoint all surface as ``AuthenticationRequired``.
    """

    def __init__(
        self, token_source: TokenSource, verifier: Optional[JwtVerifier] = None
    ) -> None:
        self._token_source = token_source
        self._verifier = verifier or JwtVerifier()

    async def _token(self) -> Optional[str]:
        token = self._token_source()
        if asyncio.iscoroutine(token):
            token = await token
        return token

    async def get_identity(self) -> Identity:
        token = await self._token()
        if not token:
            raise AuthenticationRequired()
        try:
            claims = await asyncio.to_thread(self._verifier.verify_token, token)
        except (jwt.PyJWTError, requests.RequestException) as exc:
            logger.warning(f"Rejected caller token: {exc}")
            raise AuthenticationRequired("Please sign in to use this feature.") from exc

        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationRequired("Token does not identify a user.")
        return Identity(user_id=user_id, token=token, claims=dict(claims))
