"""Password hashing for stored user credentials.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` with
unpadded urlsafe base64 salt and digest. The iteration count travels with
each hash, so ``hash_password`` takes ``iterations`` as a keyword (tests use
a low count) and ``verify_password`` reads it back from the stored value.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

SCHEME = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 260_000


def _b64e(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64d(text: str) -> bytes:
    pad = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode((text + pad).encode("ascii"))


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, *, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Salt and hash ``password`` for the users table."""
    salt = secrets.token_bytes(16)
    return f"{SCHEME}${iterations}${_b64e(salt)}${_b64e(_derive(password, salt, iterations))}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Check ``password`` against a stored hash; malformed hashes never match."""
    try:
        scheme, iterations, salt, digest = stored_hash.split("$", 3)
        if scheme != SCHEME:
            return False
        rounds = int(iterations)
        salt_bytes = _b64d(salt)
        expected = _b64d(digest)
    except (ValueError, binascii.Error):
        return False

    return hmac.compare_digest(_derive(password, salt_bytes, rounds), expected)
