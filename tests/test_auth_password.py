import time

import jwt
import pytest

from fooddelivery import errors
from fooddelivery.auth import Role, TokenService, hash_password, verify_password

SEVEN_DAYS = 7 * 24 * 60 * 60


def test_hash_is_salted_and_verifiable():
    first = hash_password("secret")
    second = hash_password("secret")
    assert first != "secret"
    assert first != second
    assert verify_password("secret", first)
    assert verify_password("secret", second)
    assert not verify_password("wrong", first)


def test_token_round_trip():
    tokens = TokenService("k")
    claims = tokens.verify(tokens.issue("abc123", Role.USER))
    assert claims["id"] == "abc123"
    assert claims["role"] == "user"
    assert claims["exp"] - claims["iat"] == SEVEN_DAYS


def test_token_expires_after_seven_days():
    tokens = TokenService("k")
    stale = tokens.issue("abc123", Role.ADMIN, issued_at=int(time.time()) - SEVEN_DAYS - 60)
    with pytest.raises(errors.ExpiredTokenError):
        tokens.verify(stale)


def test_token_signed_with_other_secret_is_invalid():
    token = TokenService("old-secret").issue("abc123", Role.USER)
    with pytest.raises(errors.InvalidTokenError):
        TokenService("new-secret").verify(token)


def test_malformed_token_is_invalid():
    with pytest.raises(errors.InvalidTokenError):
        TokenService("k").verify("not-a-jwt")


def test_token_without_id_is_invalid():
    now = int(time.time())
    token = jwt.encode({"role": "user", "iat": now, "exp": now + 60}, "k", algorithm="HS256")
    with pytest.raises(errors.InvalidTokenError):
        TokenService("k").verify(token)
