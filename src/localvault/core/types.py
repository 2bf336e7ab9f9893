"""Shared types and data structures for LocalVault."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter

__all__ = [
    "Conversation",
    "ConversationSummary",
    "Document",
    "DocumentSummary",
    "Message",
    "MessageList",
    "Role",
    "UserContext",
    "VaultStats",
]


class Role(StrEnum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """Single message inside a conversation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Role
    content: str
    timestamp: int


# Serializer for the encrypted messages column
MessageList = TypeAdapter(list[Message])


@dataclass(frozen=True)
class Conversation:
    """Decrypted conversation record."""

    id: str
    title: str
    messages: list[Message]
    created_at: int
    last_modified: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "created_at": self.created_at,
            "last_modified": self.last_modified,
        }


@dataclass(frozen=True)
class ConversationSummary:
    """Listing entry; carries the title only, never messages."""

    id: str
    title: str
    created_at: int
    last_modified: int


@dataclass(frozen=True)
class Document:
    """Decrypted document record."""

    id: str
    content: bytes
    metadata: dict[str, Any]
    file_hash: str | None
    created_at: int


@dataclass(frozen=True)
class DocumentSummary:
    """Listing entry for a document, without its content."""

    id: str
    metadata: dict[str, Any]
    file_hash: str | None
    created_at: int


@dataclass(frozen=True)
class UserContext:
    """Decrypted user context entry (preferences, facts, profile data)."""

    id: str
    context_type: str
    data: dict[str, Any]
    created_at: int


@dataclass(frozen=True)
class VaultStats:
    """Aggregate counts; none of these are confidential."""

    conversation_count: int = 0
    document_count: int = 0
    context_count: int = 0
    total_size_bytes: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for serialization."""
        return {
            "conversation_count": self.conversation_count,
            "document_count": self.document_count,
            "context_count": self.context_count,
            "total_size_bytes": self.total_size_bytes,
        }
