"""Registration, login and token refresh flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import anyio

from .database import Database
from .errors import (
    AccountExistsError,
    BadRequestError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from .models import Account, normalize_email
from .passwords import PasswordHasher
from .tokens import TokenService

logger = logging.getLogger("inventory.auth")


@dataclass(frozen=True)
class RegisterCommand:
    email: str
    password: str
    name: Optional[str] = None


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str


@dataclass(frozen=True)
class AuthResult:
    """An authenticated account together with a freshly issued token pair."""

    account: Account
    access_token: str
    refresh_token: str


class AuthService:
    """Orchestrate the account directory, password hasher and token service.

    Blocking work (bcrypt and SQLite) runs on worker threads.
    """

    def __init__(self, database: Database, hasher: PasswordHasher, tokens: TokenService) -> None:
        self._database = database
        self._hasher = hasher
        self._tokens = tokens

    async def register(self, command: RegisterCommand) -> AuthResult:
        email = normalize_email(command.email)

        existing = await anyio.to_thread.run_sync(self._database.find_account_by_email, email)
        if existing is not None:
            logger.info("Registration rejected for existing email %s", email)
            raise AccountExistsError()

        password_hash = await anyio.to_thread.run_sync(self._hasher.hash, command.password)
        account = Account.create(email=email, password_hash=password_hash, name=command.name)

        try:
            created = await anyio.to_thread.run_sync(self._database.create_account, account)
        except ConflictError as exc:
            logger.info("Registration for %s lost a uniqueness race", email)
            raise AccountExistsError() from exc

        logger.info("Registered account %s", created.id)
        return self._issue(created)

    async def login(self, command: LoginCommand) -> AuthResult:
        email = normalize_email(command.email)

        account = await anyio.to_thread.run_sync(self._database.find_account_by_email, email)
        if account is None:
            logger.warning("Failed login attempt for unknown email %s", email)
            raise InvalidCredentialsError()

        matches = await anyio.to_thread.run_sync(
            self._hasher.compare, command.password, account.password_hash
        )
        if not matches:
            logger.warning("Failed login attempt for account %s: wrong password", account.id)
            raise InvalidCredentialsError()

        logger.info("Account %s signed in", account.id)
        return self._issue(account)

    async def refresh(self, refresh_token: Optional[str]) -> str:
        """Mint a new access token from a valid refresh token.

        The refresh token itself is not rotated.
        """

        if not refresh_token or not refresh_token.strip():
            raise BadRequestError("Refresh token is required")

        try:
            claims = self._tokens.verify_refresh(refresh_token.strip())
        except InvalidTokenError as exc:
            raise InvalidTokenError("Invalid refresh token") from exc

        return self._tokens.issue_access(claims.subject)

    def _issue(self, account: Account) -> AuthResult:
        pair = self._tokens.issue_pair(account.id)
        return AuthResult(
            account=account,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )


__all__ = ["AuthResult", "AuthService", "LoginCommand", "RegisterCommand"]
