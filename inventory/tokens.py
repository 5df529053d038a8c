"""Signed bearer tokens for inventory sessions.

Access and refresh tokens are standard HS256 JWTs carrying ``sub``, ``iat``
and ``exp``. Each kind is signed with its own key derived from the configured
root secret, so one kind can never be verified as the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt

from .errors import InvalidTokenError
from .models import TokenClaims, utc_now

logger = logging.getLogger("inventory.tokens")

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)
REFRESH_SECRET_SUFFIX = "_refresh"
_REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Issue and verify access and refresh tokens.

    ``clock`` only affects issuance; verification always checks expiry
    against the real current time.
    """

    def __init__(
        self,
        secret: str,
        *,
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret must be provided")
        self._access_key = secret
        self._refresh_key = f"{secret}{REFRESH_SECRET_SUFFIX}"
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock

    def issue_access(self, subject_id: str) -> str:
        return self._encode(subject_id, self._access_key, self._access_ttl)

    def issue_refresh(self, subject_id: str) -> str:
        return self._encode(subject_id, self._refresh_key, self._refresh_ttl)

    def issue_pair(self, subject_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access(subject_id),
            refresh_token=self.issue_refresh(subject_id),
        )

    def verify_access(self, token: str) -> TokenClaims:
        return self._decode(token, self._access_key, kind="access")

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._decode(token, self._refresh_key, kind="refresh")

    def _encode(self, subject_id: str, key: str, ttl: timedelta) -> str:
        issued_at = self._clock()
        payload: Dict[str, Any] = {
            "sub": str(subject_id),
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, key, algorithm=ALGORITHM)

    def _decode(self, token: str, key: str, *, kind: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[ALGORITHM],
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.debug("Rejected expired %s token", kind)
            raise InvalidTokenError(f"Invalid {kind} token") from exc
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected %s token: %s", kind, exc)
            raise InvalidTokenError(f"Invalid {kind} token") from exc

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError(f"Invalid {kind} token")

        return TokenClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(int(payload["iat"]), timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), timezone.utc),
        )


__all__ = [
    "ACCESS_TOKEN_TTL",
    "ALGORITHM",
    "REFRESH_TOKEN_TTL",
    "TokenPair",
    "TokenService",
]
