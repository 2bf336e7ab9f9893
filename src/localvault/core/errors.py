"""Exception hierarchy for vault operations."""


class VaultError(Exception):
    """Base error for all vault failures."""


class NotInitializedError(VaultError):
    """Raised when a key or storage handle is needed but not available."""


class InvalidInputError(VaultError, ValueError):
    """Raised for empty passphrases, bad identifiers or weak parameters."""


class MalformedPayloadError(VaultError):
    """Raised when an encrypted blob or its plaintext cannot be decoded."""


class AuthenticationFailedError(VaultError):
    """Raised when the GCM tag does not verify.

    Either the passphrase is wrong or the stored data was tampered with.
    """


class StorageUnavailableError(VaultError):
    """Raised when the backing database cannot be opened or written."""
