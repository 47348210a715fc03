from __future__ import annotations

import hashlib
import hmac
import secrets

HASH_PREFIX = "pbkdf2_sha256$"
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, *, rounds: int = 200_000, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), rounds).hex()
    return f"{HASH_PREFIX}{rounds}${salt}${digest}"


def verify_password(stored: str, provided: str) -> bool:
    if not stored.startswith(HASH_PREFIX):
        return False
    try:
        _algo, rounds_s, salt, digest = stored.split("$", 3)
        candidate = hashlib.pbkdf2_hmac(
            "sha256",
            provided.encode("utf-8"),
            bytes.fromhex(salt),
            int(rounds_s),
        ).hex()
    except ValueError:
        return False
    return hmac.compare_digest(candidate, digest)
