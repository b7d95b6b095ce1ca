"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The cost factor comes from BCRYPT_ROUNDS (default 10). Each hash gets its own
random salt from bcrypt.gensalt(); the salt and cost are embedded in the
hash string, so verify_password() needs neither.

bcrypt's input limit is 72 *bytes*, not characters: "é" is two bytes in
UTF-8. bcrypt 4.x silently truncates longer input and 5.x raises, so the
limit is enforced here and callers check password_too_long() first.
"""

from __future__ import annotations

import bcrypt

MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    """Return True if the UTF-8 encoding of plain exceeds bcrypt's 72-byte input."""
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str, rounds: int = 10) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Raises ValueError for passwords over MAX_PASSWORD_BYTES, on every bcrypt
    version.
    """
    if password_too_long(plain):
        raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    An over-long password never matches (bcrypt 4.x would otherwise compare
    only its first 72 bytes). A malformed stored hash makes bcrypt raise
    ValueError; that is a failed match, not a server error.
    """
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
