"""Storage layer for LocalVault - SQLite database and repositories."""

from localvault.storage.db import open_connection
from localvault.storage.repos import (
    ContextRepo,
    ConversationsRepo,
    DocumentsRepo,
    MetaRepo,
)

__all__ = [
    "open_connection",
    "ContextRepo",
    "ConversationsRepo",
    "DocumentsRepo",
    "MetaRepo",
]
