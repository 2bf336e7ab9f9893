"""Passphrase-based key derivation and in-memory key lifetime."""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from threading import Lock

from localvault.core import config
from localvault.core.errors import InvalidInputError, NotInitializedError

logger = logging.getLogger(__name__)

KEY_LEN = 32  # 256 bits for AES-256
SALT_LEN = 16  # 128 bits
KDF_ALGORITHM = "sha256"


@dataclass(frozen=True)
class KeyMaterial:
    """Derived key plus the parameters needed to reproduce it.

    The key lives in a bytearray so it can be zeroed in place.
    """

    key: bytearray = field(repr=False)
    salt: bytes
    iterations: int
    algorithm: str = KDF_ALGORITHM

    @property
    def is_wiped(self) -> bool:
        """True once the key buffer has been zeroed."""
        return not any(self.key)

    def wipe(self) -> None:
        """Overwrite the key bytes with zeros."""
        for i in range(len(self.key)):
            self.key[i] = 0


class KeyManager:
    """Derives and holds the single live vault key.

    A second ``derive_key`` call replaces (and wipes) the previous key.
    The store only ever works with one key, so this is the intended behavior.
    """

    def __init__(self, iterations: int | None = None):
        """
        Initialize key manager.

        Args:
            iterations: PBKDF2 iteration count (defaults to KDF_ITERATIONS)
        """
        self.iterations = iterations if iterations is not None else config.KDF_ITERATIONS
        self._key: KeyMaterial | None = None
        self._lock = Lock()

    @property
    def is_unlocked(self) -> bool:
        """Check if a key is currently held in memory."""
        return self._key is not None

    def derive_key(
        self,
        passphrase: str,
        salt: bytes | None = None,
        iterations: int | None = None,
    ) -> KeyMaterial:
        """
        Stretch a passphrase into a 256-bit key with PBKDF2-HMAC-SHA256.

        Args:
            passphrase: User's passphrase
            salt: Existing vault salt (generated if not provided)
            iterations: Override for the iteration count (e.g. from vault metadata)

        Returns:
            The new live KeyMaterial

        Raises:
            InvalidInputError: If the passphrase is empty or iterations too low
        """
        if not passphrase:
            raise InvalidInputError("Passphrase must not be empty")

        rounds = iterations if iterations is not None else self.iterations
        if rounds < config.MIN_KDF_ITERATIONS:
            raise InvalidInputError(
                f"KDF iterations must be at least {config.MIN_KDF_ITERATIONS}, got {rounds}"
            )

        if salt is None:
            salt = os.urandom(SALT_LEN)
        elif len(salt) != SALT_LEN:
            raise InvalidInputError(f"Salt must be {SALT_LEN} bytes, got {len(salt)}")

        key = bytearray(
            hashlib.pbkdf2_hmac(
                KDF_ALGORITHM, passphrase.encode("utf-8"), salt, rounds, dklen=KEY_LEN
            )
        )
        material = KeyMaterial(key=key, salt=bytes(salt), iterations=rounds)

        with self._lock:
            previous, self._key = self._key, material
        if previous is not None:
            logger.debug("Replacing previously derived key")
            previous.wipe()

        logger.info("Vault key derived (%d iterations)", rounds)
        return material

    def current_key(self) -> KeyMaterial | None:
        """Return the live key, or None before derivation / after clear."""
        return self._key

    def require_key(self) -> KeyMaterial:
        """Return the live key or raise NotInitializedError."""
        key = self._key
        if key is None:
            raise NotInitializedError("Encryption key not initialized. Derive a key first.")
        return key

    def clear(self) -> None:
        """Zero and drop the held key. Safe to call repeatedly."""
        with self._lock:
            previous, self._key = self._key, None
        if previous is not None:
            previous.wipe()
            logger.info("Vault key cleared")
