"""Repository classes for data access."""

from localvault.storage.repos.context_repo import ContextRepo, ContextRow
from localvault.storage.repos.conversations_repo import (
    ConversationRow,
    ConversationsRepo,
)
from localvault.storage.repos.documents_repo import DocumentRow, DocumentsRepo
from localvault.storage.repos.meta_repo import KdfParams, MetaRepo

__all__ = [
    "ContextRepo",
    "ContextRow",
    "ConversationRow",
    "ConversationsRepo",
    "DocumentRow",
    "DocumentsRepo",
    "KdfParams",
    "MetaRepo",
]
