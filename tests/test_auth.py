"""Tests for password hashing and JWT helpers."""

import pytest
from fastapi import HTTPException

from idbridge.core.auth import create_access_token, decode_access_token, hash_password, verify_password


def test_password_roundtrip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("battery staple", hashed)


@pytest.mark.parametrize("hashed", [None, "", "plaintext-not-a-hash"])
def test_missing_or_malformed_hash_never_matches(hashed):
    assert verify_password("anything", hashed) is False


def test_token_carries_role_and_provider():
    token = create_access_token("user-id", "member", "xsuaa")
    payload = decode_access_token(token)
    assert payload["sub"] == "user-id"
    assert payload["role"] == "member"
    assert payload["provider"] == "xsuaa"


def test_invalid_token_is_401():
    with pytest.raises(HTTPException) as exc:
        decode_access_token("not.a.jwt")
    assert exc.value.status_code == 401
