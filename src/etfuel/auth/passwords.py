"""
bcrypt hashing for the profile-held password hash.
"""

import bcrypt

from etfuel.shared.exceptions import (
    AuthenticationFailedError,
    NoSecretConfiguredError,
    SecretMismatchError,
)

# bcrypt only reads the first 72 bytes; newer releases raise instead of truncating.
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a plaintext password with a fresh salt."""
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, password_hash: str | None) -> None:
    """Verify ``password`` against a stored bcrypt hash.

    Raises:
        NoSecretConfiguredError: No hash is stored for the account.
        SecretMismatchError: The password does not match.
        AuthenticationFailedError: The stored hash is not a valid bcrypt hash.
    """
    if not password_hash:
        raise NoSecretConfiguredError()

    try:
        matched = bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError as e:
        raise AuthenticationFailedError(
            "Password verification failed",
            details={"error": str(e)},
        ) from e

    if not matched:
        raise SecretMismatchError()
