"""Vault metadata repository - cleartext KDF parameters.

The salt and iteration count are not secret; they are stored so that the
same passphrase reproduces the same key on every open.
"""

import base64
import binascii
import sqlite3
from dataclasses import dataclass

from localvault.core.errors import MalformedPayloadError

SALT_KEY = "kdf_salt"
ITERATIONS_KEY = "kdf_iterations"
ALGORITHM_KEY = "kdf_algorithm"


@dataclass(frozen=True)
class KdfParams:
    """Key derivation parameters persisted with the vault."""

    salt: bytes
    iterations: int
    algorithm: str


class MetaRepo:
    """Repository for the vault_meta key/value table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM vault_meta WHERE key = ?",
            (key,),
        ).fetchone()
        return row["value"] if row else None

    def insert_if_absent(self, key: str, value: str) -> bool:
        """Store a value unless the key already exists. Returns True if written."""
        cursor = self.conn.execute(
            """
            INSERT INTO vault_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO NOTHING
            """,
            (key, value),
        )
        return cursor.rowcount > 0

    def get_kdf_params(self) -> KdfParams | None:
        """
        Load stored KDF parameters, or None for a fresh vault.

        Raises:
            MalformedPayloadError: If the stored salt or iteration count
                cannot be decoded
        """
        salt = self.get(SALT_KEY)
        iterations = self.get(ITERATIONS_KEY)
        if salt is None or iterations is None:
            return None
        try:
            decoded_salt = base64.b64decode(salt, validate=True)
            rounds = int(iterations)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise MalformedPayloadError(f"Corrupt KDF parameters in vault_meta: {exc}") from exc
        return KdfParams(
            salt=decoded_salt,
            iterations=rounds,
            algorithm=self.get(ALGORITHM_KEY) or "sha256",
        )

    def init_kdf_params(self, params: KdfParams) -> KdfParams:
        """
        Persist KDF parameters unless another opener already did.

        Call inside a write transaction. Existing values are never
        overwritten; the parameters actually stored are returned.
        """
        self.insert_if_absent(SALT_KEY, base64.b64encode(params.salt).decode("ascii"))
        self.insert_if_absent(ITERATIONS_KEY, str(params.iterations))
        self.insert_if_absent(ALGORITHM_KEY, params.algorithm)
        stored = self.get_kdf_params()
        if stored is None:
            raise MalformedPayloadError("KDF parameters missing after initialization")
        return stored
