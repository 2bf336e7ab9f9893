"""Documents repository - pure data access for encrypted document rows."""

import sqlite3
from dataclasses import dataclass

from localvault.core.cipher import EncryptedPayload


@dataclass(frozen=True)
class DocumentRow:
    """Stored document row with its encrypted columns still sealed."""

    id: str
    encrypted_content: EncryptedPayload | None
    encrypted_metadata: EncryptedPayload
    file_hash: str | None
    created_at: int
    encryption_version: int


class DocumentsRepo:
    """Repository for document data access."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(
        self,
        document_id: str,
        content: EncryptedPayload,
        metadata: EncryptedPayload,
        file_hash: str | None,
        created_at: int,
        encryption_version: int,
    ) -> None:
        """Insert a new document row."""
        self.conn.execute(
            """
            INSERT INTO documents
            (id, encrypted_content, encrypted_metadata, file_hash, created_at, encryption_version)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                document_id,
                content.encode(),
                metadata.encode(),
                file_hash,
                created_at,
                encryption_version,
            ),
        )

    def get_by_id(self, document_id: str) -> DocumentRow | None:
        """Get a document row including its content column."""
        row = self.conn.execute(
            """
            SELECT id, encrypted_content, encrypted_metadata, file_hash,
                   created_at, encryption_version
            FROM documents
            WHERE id = ?
            """,
            (document_id,),
        ).fetchone()
        if row:
            return DocumentRow(
                id=row["id"],
                encrypted_content=EncryptedPayload.decode(row["encrypted_content"]),
                encrypted_metadata=EncryptedPayload.decode(row["encrypted_metadata"]),
                file_hash=row["file_hash"],
                created_at=row["created_at"],
                encryption_version=row["encryption_version"],
            )
        return None

    def list_headers(self) -> list[DocumentRow]:
        """Get all rows newest first, without the content column."""
        rows = self.conn.execute(
            """
            SELECT id, encrypted_metadata, file_hash, created_at, encryption_version
            FROM documents
            ORDER BY created_at DESC
            """
        ).fetchall()
        return [
            DocumentRow(
                id=row["id"],
                encrypted_content=None,
                encrypted_metadata=EncryptedPayload.decode(row["encrypted_metadata"]),
                file_hash=row["file_hash"],
                created_at=row["created_at"],
                encryption_version=row["encryption_version"],
            )
            for row in rows
        ]

    def ids_by_hash(self, file_hash: str) -> list[str]:
        """Get ids of documents whose plaintext content hash matches."""
        rows = self.conn.execute(
            "SELECT id FROM documents WHERE file_hash = ? ORDER BY created_at",
            (file_hash,),
        ).fetchall()
        return [row["id"] for row in rows]

    def delete(self, document_id: str) -> bool:
        """Delete a document. Returns False if no row matched."""
        cursor = self.conn.execute(
            "DELETE FROM documents WHERE id = ?",
            (document_id,),
        )
        return cursor.rowcount > 0

    def count(self) -> int:
        """Get the number of stored documents."""
        row = self.conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return row[0] if row else 0
