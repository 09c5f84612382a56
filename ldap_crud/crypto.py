from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


def _fernet(secret_key: str) -> Fernet:
    secret = secret_key.encode("utf-8")
    key = base64.urlsafe_b64encode(hashlib.sha256(secret).digest())
    return Fernet(key)


def encrypt_str(value: str, secret_key: str) -> str:
    if not value:
        return ""
    f = _fernet(secret_key)
    return f.encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_str(token: str, secret_key: str) -> str:
    """Decrypt a token produced by ``encrypt_str``. Returns "" when it cannot be decrypted."""
    if not token:
        return ""
    f = _fernet(secret_key)
    try:
        return f.decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        return ""
