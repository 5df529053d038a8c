"""Environment driven configuration for the inventory service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .passwords import DEFAULT_ROUNDS, MAX_ROUNDS, MIN_ROUNDS

logger = logging.getLogger("inventory.config")

DEVELOPMENT_JWT_SECRET = "fallback_secret_key_for_development_only"
DEFAULT_CORS_ORIGINS: Tuple[str, ...] = (
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved once at process start."""

    jwt_secret: str
    database_path: Path
    bcrypt_rounds: int = DEFAULT_ROUNDS
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    trusted_proxies: Tuple[str, ...] | str = "*"
    uses_fallback_secret: bool = False


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "inventory.sqlite3").resolve(strict=False)


def _parse_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``)."""

    env = os.environ if environ is None else environ

    secret = (env.get("INVENTORY_JWT_SECRET") or "").strip()
    uses_fallback = not secret
    if uses_fallback:
        logger.warning(
            "INVENTORY_JWT_SECRET is not set; signing tokens with the insecure development secret"
        )
        secret = DEVELOPMENT_JWT_SECRET

    rounds = _parse_int(env.get("INVENTORY_BCRYPT_ROUNDS"), "INVENTORY_BCRYPT_ROUNDS", DEFAULT_ROUNDS)
    if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
        raise ValueError(f"INVENTORY_BCRYPT_ROUNDS must be between {MIN_ROUNDS} and {MAX_ROUNDS}")

    access_minutes = _parse_int(
        env.get("INVENTORY_ACCESS_TOKEN_MINUTES"), "INVENTORY_ACCESS_TOKEN_MINUTES", 15
    )
    refresh_days = _parse_int(env.get("INVENTORY_REFRESH_TOKEN_DAYS"), "INVENTORY_REFRESH_TOKEN_DAYS", 7)
    if access_minutes <= 0 or refresh_days <= 0:
        raise ValueError("Token lifetimes must be positive")

    cors_origins = _parse_list(env.get("INVENTORY_CORS_ORIGINS")) or DEFAULT_CORS_ORIGINS
    trusted_proxies: Tuple[str, ...] | str = _parse_list(env.get("INVENTORY_TRUSTED_PROXIES")) or "*"

    return Settings(
        jwt_secret=secret,
        database_path=resolve_database_path(env.get("INVENTORY_DB_PATH")),
        bcrypt_rounds=rounds,
        access_token_ttl=timedelta(minutes=access_minutes),
        refresh_token_ttl=timedelta(days=refresh_days),
        cors_origins=cors_origins,
        trusted_proxies=trusted_proxies,
        uses_fallback_secret=uses_fallback,
    )


__all__ = ["DEVELOPMENT_JWT_SECRET", "Settings", "load_settings", "resolve_database_path"]
