from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from inventory.errors import InvalidTokenError
from inventory.models import utc_now
from inventory.tokens import ALGORITHM, TokenService

SECRET = "tests-signing-secret-0123456789abcdef"


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(SECRET)


def _issued_in_past(delta: timedelta) -> TokenService:
    return TokenService(SECRET, clock=lambda: utc_now() - delta)


def test_access_token_round_trip(tokens: TokenService) -> None:
    token = tokens.issue_access("account-1")

    claims = tokens.verify_access(token)

    assert claims.subject == "account-1"
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)


def test_refresh_token_lifetime(tokens: TokenService) -> None:
    claims = tokens.verify_refresh(tokens.issue_refresh("account-1"))

    assert claims.subject == "account-1"
    assert claims.expires_at - claims.issued_at == timedelta(days=7)


def test_tokens_use_standard_jwt_wire_format(tokens: TokenService) -> None:
    token = tokens.issue_access("account-42")

    assert token.count(".") == 2
    assert jwt.get_unverified_header(token)["alg"] == ALGORITHM
    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert set(payload) == {"sub", "iat", "exp"}
    assert payload["sub"] == "account-42"


def test_refresh_key_is_derived_from_root_secret(tokens: TokenService) -> None:
    token = tokens.issue_refresh("account-7")

    payload = jwt.decode(token, f"{SECRET}_refresh", algorithms=["HS256"])
    assert payload["sub"] == "account-7"
    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(token, SECRET, algorithms=["HS256"])


def test_token_kinds_do_not_cross_verify(tokens: TokenService) -> None:
    access = tokens.issue_access("account-1")
    refresh = tokens.issue_refresh("account-1")

    with pytest.raises(InvalidTokenError):
        tokens.verify_refresh(access)
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(refresh)


def test_expired_access_token_rejected() -> None:
    expired = _issued_in_past(timedelta(minutes=16)).issue_access("account-1")

    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify_access(expired)


def test_access_token_valid_until_window_elapses() -> None:
    nearly_expired = _issued_in_past(timedelta(minutes=14)).issue_access("account-1")

    assert TokenService(SECRET).verify_access(nearly_expired).subject == "account-1"


def test_expired_refresh_token_rejected() -> None:
    expired = _issued_in_past(timedelta(days=7, minutes=1)).issue_refresh("account-1")

    with pytest.raises(InvalidTokenError):
        TokenService(SECRET).verify_refresh(expired)


def test_token_signed_with_other_secret_rejected(tokens: TokenService) -> None:
    foreign = TokenService("another-secret-entirely-0123456789abcdef").issue_access("account-1")
    header, payload, _ = tokens.issue_access("account-1").split(".")
    forged = ".".join([header, payload, foreign.split(".")[2]])

    with pytest.raises(InvalidTokenError):
        tokens.verify_access(foreign)
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(forged)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "Bearer x.y.z"])
def test_malformed_tokens_rejected(tokens: TokenService, token: str) -> None:
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(token)


def test_unsigned_token_rejected(tokens: TokenService) -> None:
    now = utc_now()
    unsigned = jwt.encode(
        {"sub": "account-1", "iat": now, "exp": now + timedelta(minutes=5)},
        None,
        algorithm="none",
    )

    with pytest.raises(InvalidTokenError):
        tokens.verify_access(unsigned)


def test_token_without_expiry_rejected(tokens: TokenService) -> None:
    token = jwt.encode({"sub": "account-1", "iat": utc_now()}, SECRET, algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        tokens.verify_access(token)


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        TokenService("")
