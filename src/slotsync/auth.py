"""Credential gate in front of every remote interaction.

The caller's password is checked against a bcrypt hash with bcrypt.checkpw,
which compares in constant time. There is no lockout or backoff on repeated
failures.
"""

import bcrypt

from src.slotsync.errors import InvalidCredential, MissingCredential, ServerMisconfigured
from src.slotsync.logging import get_logger

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes; recent releases reject longer input.
_BCRYPT_MAX_BYTES = 72


def _secret_bytes(secret: str) -> bytes:
    return secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialGate:
    """Verifies the shared access password before any browser work starts."""

    def __init__(self, password_hash: str) -> None:
        self.password_hash = password_hash.strip()

    def verify(self, credential: str | None) -> None:
        """Raise unless ``credential`` matches the configured hash.

        Args:
            credential: Password supplied by the caller.

        Raises:
            ServerMisconfigured: No hash configured, or the hash is unreadable.
            MissingCredential: Empty or absent credential.
            InvalidCredential: Credential does not match.
        """
        if not self.password_hash:
            logger.error("credential_check_failed", reason="no_password_hash")
            raise ServerMisconfigured("No password hash configured")

        if not credential:
            logger.info("credential_check_failed", reason="missing")
            raise MissingCredential("Password is missing")

        try:
            matches = bcrypt.checkpw(
                _secret_bytes(credential), self.password_hash.encode("utf-8")
            )
        except ValueError as e:
            logger.error("credential_check_failed", reason="bad_hash", error=str(e))
            raise ServerMisconfigured("Configured password hash is not a bcrypt hash") from e

        if not matches:
            logger.info("credential_check_failed", reason="mismatch")
            raise InvalidCredential("Password is incorrect")

        logger.debug("credential_check_passed")


def hash_password(password: str, rounds: int = 12) -> str:
    """Produce a bcrypt hash suitable for the PASSWORD_HASH setting."""
    return bcrypt.hashpw(_secret_bytes(password), bcrypt.gensalt(rounds=rounds)).decode(
        "ascii"
    )
