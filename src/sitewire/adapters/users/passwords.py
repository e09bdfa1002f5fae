"""Password hashing with PBKDF2-HMAC.

Hashes are stored as ``<algorithm>$<iterations>$<salt>$<digest>`` with salt
and digest hex-encoded, so the iteration count can be raised later without
invalidating existing hashes.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 390_000
SALT_BYTES = 16


def hash_password(password: str, *, iterations: int = ITERATIONS) -> str:
    """Return a salted hash of *password*."""
    salt = secrets.token_bytes(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Return True if *password* matches the stored hash *encoded*.

    Malformed hashes never match.
    """
    try:
        algorithm, iterations, salt, digest = encoded.split("$")
        rounds = int(iterations)
        salt_bytes, expected = bytes.fromhex(salt), bytes.fromhex(digest)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt_bytes, rounds)
    return hmac.compare_digest(actual, expected)
