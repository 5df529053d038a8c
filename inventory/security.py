"""Bearer token gate for protected inventory routes."""
from __future__ import annotations

import logging
import sqlite3

import anyio
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import Database
from .errors import InternalError, InvalidTokenError
from .models import Account
from .tokens import TokenService

logger = logging.getLogger("inventory.security")

UNAUTHORIZED_MESSAGE = "Unauthorized"


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=UNAUTHORIZED_MESSAGE,
        headers={"WWW-Authenticate": "Bearer"},
    )


class BearerTokenAuth:
    """Resolve ``Authorization: Bearer <token>`` to a live :class:`Account`.

    Missing headers, bad or expired tokens and tokens whose subject no longer
    exists all produce the same 401 response. Only the log records which one
    it was.
    """

    def __init__(self, tokens: TokenService, database: Database):
        self._tokens = tokens
        self._database = database
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Account:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            logger.info("Rejected %s %s: missing bearer token", request.method, request.url.path)
            raise _unauthorized()

        try:
            claims = self._tokens.verify_access(credentials.credentials)
        except InvalidTokenError:
            logger.info("Rejected %s %s: invalid access token", request.method, request.url.path)
            raise _unauthorized() from None

        try:
            account = await anyio.to_thread.run_sync(self._database.find_account_by_id, claims.subject)
        except sqlite3.Error as exc:
            logger.exception("Account lookup failed while authorising a request")
            raise InternalError() from exc

        if account is None:
            logger.info(
                "Rejected %s %s: token subject %s no longer exists",
                request.method,
                request.url.path,
                claims.subject,
            )
            raise _unauthorized()

        request.state.account = account
        return account


__all__ = ["BearerTokenAuth", "UNAUTHORIZED_MESSAGE"]
