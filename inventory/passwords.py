"""Password hashing for inventory accounts."""

from __future__ import annotations

from typing import Optional

from passlib.context import CryptContext

from .errors import BadRequestError

DEFAULT_ROUNDS = 10
MIN_ROUNDS = 4
MAX_ROUNDS = 31
# bcrypt only reads this many bytes of the secret.
MAX_PASSWORD_BYTES = 72


def password_problem(password: str) -> Optional[str]:
    """Return why ``password`` cannot be hashed faithfully, or ``None``."""

    if "\x00" in password:
        return "must not contain NUL characters"
    try:
        encoded = password.encode("utf-8")
    except UnicodeEncodeError:
        return "must be valid UTF-8 text"
    if len(encoded) > MAX_PASSWORD_BYTES:
        return f"must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded"
    return None


class PasswordHasher:
    """One-way bcrypt hashing with a random salt per call.

    The wrapped :class:`CryptContext` is immutable after construction, so a
    single instance can be shared between worker threads.
    """

    def __init__(self, *, rounds: int = DEFAULT_ROUNDS) -> None:
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}")
        self._rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        problem = password_problem(password)
        if problem is not None:
            raise BadRequestError(f"Password {problem}")
        return self._context.hash(password)

    def compare(self, password: str, hashed: str) -> bool:
        """Return ``True`` if ``password`` matches ``hashed``.

        Stored hashes that cannot be parsed, and candidates that bcrypt would
        truncate or refuse, are treated as a mismatch.
        """

        if not hashed or password_problem(password) is not None:
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False


__all__ = ["DEFAULT_ROUNDS", "MAX_PASSWORD_BYTES", "PasswordHasher", "password_problem"]
