"""Unit tests for password hashing and API key encryption."""

from __future__ import annotations

import pytest

from op3.server.security import (
    ENCRYPTED_PREFIX,
    _get_fernet,
    decrypt_secret,
    encrypt_secret,
    hash_password,
    mask_secret,
    verify_password,
)
from op3.server.settings import get_settings


def test_password_round_trip() -> None:
    hashed = hash_password("Str0ng!Pass")
    assert hashed != "Str0ng!Pass"
    assert verify_password("Str0ng!Pass", hashed)
    assert not verify_password("wrong", hashed)


def test_encrypt_secret() -> None:
    token = encrypt_secret("sk-secret")
    assert token.startswith(ENCRYPTED_PREFIX)
    assert "sk-secret" not in token
    assert decrypt_secret(token) == "sk-secret"
    assert encrypt_secret(token) == token
    assert encrypt_secret("") == ""


def test_plaintext_passes_through_decrypt() -> None:
    assert decrypt_secret("legacy-key") == "legacy-key"


def test_changed_secret_cannot_decrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    token = encrypt_secret("sk-secret")

    monkeypatch.setenv("OP3_AUTH_SECRET", "another-secret")
    get_settings.cache_clear()
    _get_fernet.cache_clear()

    assert decrypt_secret(token) == ""


@pytest.mark.parametrize(
    ("plaintext", "masked"),
    [
        ("sk-abcdefghijkl", "sk-a...ijkl"),
        ("short", "*****"),
        ("", ""),
    ],
)
def test_mask_secret(plaintext: str, masked: str) -> None:
    assert mask_secret(plaintext) == masked
