from __future__ import annotations

import base64
import hashlib
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..settings import settings

_DEV_KEY = "proposal-tracker-dev-key"


def _get_key() -> bytes:
    raw = settings.pagination_token_key or _DEV_KEY
    return hashlib.sha256(str(raw).encode("utf-8")).digest()  # 32 bytes


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def encrypt_string(plain_text: Any) -> str | None:
    """AES-GCM encrypt into a url-safe `v1.<iv>.<ciphertext+tag>` string."""
    if plain_text is None:
        return None

    iv = os.urandom(12)
    ct_with_tag = AESGCM(_get_key()).encrypt(iv, str(plain_text).encode("utf-8"), None)
    return ".".join(["v1", _b64(iv), _b64(ct_with_tag)])


def decrypt_string(cipher_text: Any) -> str | None:
    """Returns None for anything that was not produced by `encrypt_string`."""
    if not cipher_text:
        return None

    parts = str(cipher_text).split(".")
    if len(parts) != 3 or parts[0] != "v1":
        return None

    try:
        iv = _unb64(parts[1])
        data = _unb64(parts[2])
    except (ValueError, TypeError):
        return None
    if len(iv) != 12 or len(data) < 16:
        return None

    try:
        return AESGCM(_get_key()).decrypt(iv, data, None).decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        return None
