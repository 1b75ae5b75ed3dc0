"""Bearer token issuance, verification and revocation.

Tokens are HS256-signed JWTs carrying ``sub``, ``iat``, ``exp`` and ``jti``.
Every issued token is also persisted in the store, and a token is only
accepted when both the signature check and the store lookup succeed. The
signature proves the token was issued here; the store row proves it is
still live, which is what makes logout take effect immediately.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any

import jwt
import structlog

from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings
from searchgate.store.base import NAMESPACE_TOKENS, Store

logger = structlog.get_logger(__name__)

BEARER_SCHEME = "bearer"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token. ``token`` is shown to the caller once."""

    token: str
    subject: int
    issued_at: int
    expires_at: int


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def extract_bearer(authorization: str | None) -> str | None:
    """Return the credentials of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    credentials = credentials.strip()
    return credentials or None


class TokenAuthenticator:
    """Issues, verifies and revokes store-backed bearer tokens."""

    def __init__(
        self,
        store: Store,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        ttl_seconds: int = 86400,
        clock: Clock = system_clock,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    @classmethod
    def from_settings(
        cls, store: Store, settings: Settings, clock: Clock = system_clock
    ) -> TokenAuthenticator:
        return cls(
            store,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            ttl_seconds=settings.token_ttl_seconds,
            clock=clock,
        )

    @staticmethod
    def _row_key(subject: int, token: str) -> str:
        return f"{subject}:{token_fingerprint(token)}"

    @staticmethod
    def _subject_prefix(subject: int) -> str:
        return f"{subject}:"

    def _decode(self, token: str, *, check_expiry: bool) -> dict[str, Any] | None:
        """Verify the signature and return the claims, or None.

        Expiry is compared against the injected clock rather than PyJWT's
        wall clock, so ``verify_exp`` is switched off here.
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "iat", "exp"],
                },
            )
        except jwt.InvalidTokenError as exc:
            logger.info("token_rejected", reason="invalid_signature_or_format", error=type(exc).__name__)
            return None

        try:
            claims["sub"] = int(claims["sub"])
            claims["exp"] = int(claims["exp"])
        except (TypeError, ValueError):
            logger.info("token_rejected", reason="malformed_claims")
            return None

        if check_expiry and claims["exp"] <= self.clock():
            logger.info("token_rejected", reason="expired", subject=claims["sub"])
            return None
        return claims

    async def issue(self, subject: int) -> IssuedToken:
        """Mint and persist a token for ``subject``.

        Expired rows left behind by the same subject are pruned as a side
        effect.
        """
        now = self.clock()
        issued_at = int(now)
        expires_at = issued_at + self.ttl_seconds
        claims = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_hex(8),
        }
        token = jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

        pruned = await self.store.purge_expired(NAMESPACE_TOKENS, self._subject_prefix(subject))
        await self.store.put(
            NAMESPACE_TOKENS,
            self._row_key(subject, token),
            {"subject": subject, "issued_at": issued_at, "expires_at": expires_at},
            expires_at=float(expires_at),
        )

        logger.info(
            "token_issued",
            subject=subject,
            expires_at=expires_at,
            pruned_expired=pruned,
        )
        return IssuedToken(token=token, subject=subject, issued_at=issued_at, expires_at=expires_at)

    async def verify(self, token: str | None) -> int | None:
        """Return the token's subject, or None if it is not currently valid.

        The stateless checks run first; a token that fails them never
        reaches the store.
        """
        if not token:
            return None

        claims = self._decode(token, check_expiry=True)
        if claims is None:
            return None

        subject = claims["sub"]
        record = await self.store.get(NAMESPACE_TOKENS, self._row_key(subject, token))
        if record is None:
            logger.info("token_rejected", reason="not_live", subject=subject)
            return None
        return subject

    async def session(self, token: str | None) -> IssuedToken | None:
        """Like ``verify`` but returns the persisted token metadata."""
        subject = await self.verify(token)
        if subject is None or token is None:
            return None
        record = await self.store.get(NAMESPACE_TOKENS, self._row_key(subject, token))
        if record is None:
            return None
        return IssuedToken(
            token=token,
            subject=subject,
            issued_at=int(record.value["issued_at"]),
            expires_at=int(record.value["expires_at"]),
        )

    async def revoke(self, token: str | None) -> bool:
        """Delete the token's row. True if a live row was removed.

        Tokens past ``exp`` are still accepted here as long as the
        signature verifies.
        """
        if not token:
            return False
        claims = self._decode(token, check_expiry=False)
        if claims is None:
            return False

        subject = claims["sub"]
        removed = await self.store.delete(NAMESPACE_TOKENS, self._row_key(subject, token))
        logger.info("token_revoked", subject=subject, removed=removed)
        return removed
