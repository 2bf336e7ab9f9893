"""LocalVault core library - keys, cipher and the encrypted store."""

from typing import TYPE_CHECKING

from localvault.core.errors import (
    AuthenticationFailedError,
    InvalidInputError,
    MalformedPayloadError,
    NotInitializedError,
    StorageUnavailableError,
    VaultError,
)
from localvault.core.types import (
    Conversation,
    ConversationSummary,
    Document,
    DocumentSummary,
    Message,
    Role,
    UserContext,
    VaultStats,
)

if TYPE_CHECKING:
    from localvault.core.cipher import EncryptedPayload, FieldCodec
    from localvault.core.keys import KeyManager, KeyMaterial
    from localvault.core.store import VaultStore

__all__ = [
    # Core classes
    "EncryptedPayload",
    "FieldCodec",
    "KeyManager",
    "KeyMaterial",
    "VaultStore",
    # Types
    "Conversation",
    "ConversationSummary",
    "Document",
    "DocumentSummary",
    "Message",
    "Role",
    "UserContext",
    "VaultStats",
    # Errors
    "AuthenticationFailedError",
    "InvalidInputError",
    "MalformedPayloadError",
    "NotInitializedError",
    "StorageUnavailableError",
    "VaultError",
]


def __getattr__(name: str):
    if name in ("EncryptedPayload", "FieldCodec"):
        from localvault.core import cipher

        return getattr(cipher, name)
    if name in ("KeyManager", "KeyMaterial"):
        from localvault.core import keys

        return getattr(keys, name)
    if name == "VaultStore":
        from localvault.core.store import VaultStore

        return VaultStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
