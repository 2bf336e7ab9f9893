"""User context repository - encrypted per-user facts and preferences."""

import sqlite3
from dataclasses import dataclass

from localvault.core.cipher import EncryptedPayload


@dataclass(frozen=True)
class ContextRow:
    """Stored user_context row."""

    id: str
    encrypted_data: EncryptedPayload
    context_type: str
    created_at: int
    encryption_version: int


def _to_row(row: sqlite3.Row) -> ContextRow:
    return ContextRow(
        id=row["id"],
        encrypted_data=EncryptedPayload.decode(row["encrypted_data"]),
        context_type=row["context_type"],
        created_at=row["created_at"],
        encryption_version=row["encryption_version"],
    )


class ContextRepo:
    """Repository for user context data access."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(
        self,
        context_id: str,
        data: EncryptedPayload,
        context_type: str,
        created_at: int,
        encryption_version: int,
    ) -> None:
        """Insert a new context row."""
        self.conn.execute(
            """
            INSERT INTO user_context
            (id, encrypted_data, context_type, created_at, encryption_version)
            VALUES (?, ?, ?, ?, ?)
            """,
            (context_id, data.encode(), context_type, created_at, encryption_version),
        )

    def get_by_id(self, context_id: str) -> ContextRow | None:
        """Get a specific context entry."""
        row = self.conn.execute(
            """
            SELECT id, encrypted_data, context_type, created_at, encryption_version
            FROM user_context
            WHERE id = ?
            """,
            (context_id,),
        ).fetchone()
        return _to_row(row) if row else None

    def get_all(self, context_type: str | None = None) -> list[ContextRow]:
        """Get context entries newest first, optionally filtered by type."""
        query = """
            SELECT id, encrypted_data, context_type, created_at, encryption_version
            FROM user_context
        """
        params: tuple[str, ...] = ()
        if context_type is not None:
            query += " WHERE context_type = ?"
            params = (context_type,)
        query += " ORDER BY created_at DESC"

        return [_to_row(row) for row in self.conn.execute(query, params).fetchall()]

    def delete(self, context_id: str) -> bool:
        """Delete a context entry. Returns False if no row matched."""
        cursor = self.conn.execute(
            "DELETE FROM user_context WHERE id = ?",
            (context_id,),
        )
        return cursor.rowcount > 0

    def count(self) -> int:
        """Get the number of stored context entries."""
        row = self.conn.execute("SELECT COUNT(*) FROM user_context").fetchone()
        return row[0] if row else 0
