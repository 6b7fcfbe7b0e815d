"""Password hashing and reversible encryption of stored API keys.

Passwords use argon2.  Provider API keys are encrypted with Fernet using a
key derived from the server secret so they can be decrypted when a provider
is called.
"""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError
from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from op3.server.settings import get_settings

# Prefix to tell encrypted values apart from legacy plaintext
ENCRYPTED_PREFIX = "enc::"

_password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _password_hasher.verify(password_hash, password)
    except VerifyMismatchError:
        return False


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Fernet needs a 32-byte urlsafe-base64 key; derive it from the secret with SHA256."""
    secret = get_settings().resolve_auth_secret()
    key_bytes = hashlib.sha256(secret.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key_bytes))


def encrypt_secret(plaintext: str) -> str:
    """Encrypt *plaintext*; returns an ``enc::`` prefixed token.  Idempotent."""
    if not plaintext:
        return ""
    if plaintext.startswith(ENCRYPTED_PREFIX):
        return plaintext
    return ENCRYPTED_PREFIX + _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a value produced by ``encrypt_secret``.

    Unprefixed values are returned unchanged.  Returns an empty string when
    the token cannot be decrypted (e.g. the server secret changed).
    """
    if not encrypted.startswith(ENCRYPTED_PREFIX):
        return encrypted
    try:
        return _get_fernet().decrypt(encrypted[len(ENCRYPTED_PREFIX) :].encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt secret -- was OP3_AUTH_SECRET changed?")
        return ""


def mask_secret(plaintext: str) -> str:
    """Return a display-safe version of an API key (``sk-a...wxyz``)."""
    if len(plaintext) <= 8:
        return "*" * len(plaintext)
    return f"{plaintext[:4]}...{plaintext[-4:]}"
