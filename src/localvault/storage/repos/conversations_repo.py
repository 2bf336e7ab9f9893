"""Conversations repository - pure data access for encrypted conversation rows.

Encrypted columns are accepted and returned only as EncryptedPayload;
decryption is the caller's job.
"""

import sqlite3
from dataclasses import dataclass

from localvault.core.cipher import EncryptedPayload


@dataclass(frozen=True)
class ConversationRow:
    """Stored conversation row with its encrypted columns still sealed."""

    id: str
    encrypted_title: EncryptedPayload
    encrypted_messages: EncryptedPayload | None
    created_at: int
    last_modified: int
    encryption_version: int


class ConversationsRepo:
    """Repository for conversation data access."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize conversations repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def insert(
        self,
        conversation_id: str,
        title: EncryptedPayload,
        messages: EncryptedPayload,
        created_at: int,
        encryption_version: int,
    ) -> None:
        """Insert a new conversation row."""
        self.conn.execute(
            """
            INSERT INTO conversations
            (id, encrypted_title, encrypted_messages, created_at, last_modified, encryption_version)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                conversation_id,
                title.encode(),
                messages.encode(),
                created_at,
                created_at,
                encryption_version,
            ),
        )

    def get_by_id(self, conversation_id: str) -> ConversationRow | None:
        """Get a conversation row including its messages column."""
        row = self.conn.execute(
            """
            SELECT id, encrypted_title, encrypted_messages, created_at,
                   last_modified, encryption_version
            FROM conversations
            WHERE id = ?
            """,
            (conversation_id,),
        ).fetchone()
        if row:
            return ConversationRow(
                id=row["id"],
                encrypted_title=EncryptedPayload.decode(row["encrypted_title"]),
                encrypted_messages=EncryptedPayload.decode(row["encrypted_messages"]),
                created_at=row["created_at"],
                last_modified=row["last_modified"],
                encryption_version=row["encryption_version"],
            )
        return None

    def list_headers(self) -> list[ConversationRow]:
        """Get all rows ordered by last_modified descending, without messages."""
        rows = self.conn.execute(
            """
            SELECT id, encrypted_title, created_at, last_modified, encryption_version
            FROM conversations
            ORDER BY last_modified DESC
            """
        ).fetchall()
        return [
            ConversationRow(
                id=row["id"],
                encrypted_title=EncryptedPayload.decode(row["encrypted_title"]),
                encrypted_messages=None,
                created_at=row["created_at"],
                last_modified=row["last_modified"],
                encryption_version=row["encryption_version"],
            )
            for row in rows
        ]

    def update_messages(
        self,
        conversation_id: str,
        messages: EncryptedPayload,
        last_modified: int,
    ) -> bool:
        """Overwrite the messages column. Returns False if no row matched."""
        cursor = self.conn.execute(
            """
            UPDATE conversations
            SET encrypted_messages = ?, last_modified = ?
            WHERE id = ?
            """,
            (messages.encode(), last_modified, conversation_id),
        )
        return cursor.rowcount > 0

    def update_title(
        self,
        conversation_id: str,
        title: EncryptedPayload,
        last_modified: int,
    ) -> bool:
        """Overwrite the title column. Returns False if no row matched."""
        cursor = self.conn.execute(
            """
            UPDATE conversations
            SET encrypted_title = ?, last_modified = ?
            WHERE id = ?
            """,
            (title.encode(), last_modified, conversation_id),
        )
        return cursor.rowcount > 0

    def delete(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns False if no row matched."""
        cursor = self.conn.execute(
            "DELETE FROM conversations WHERE id = ?",
            (conversation_id,),
        )
        return cursor.rowcount > 0

    def count(self) -> int:
        """Get the number of stored conversations."""
        row = self.conn.execute("SELECT COUNT(*) FROM conversations").fetchone()
        return row[0] if row else 0
