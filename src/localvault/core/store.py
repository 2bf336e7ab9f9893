"""Encrypted SQLite-backed record store for LocalVault.

Every encrypted column passes through FieldCodec before it reaches a
repository, so repositories only ever see EncryptedPayload values.
"""

import hashlib
import logging
import os
import sqlite3
import time
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any, Generator
from uuid import uuid4

from pydantic import ValidationError

from localvault.core import config
from localvault.core.cipher import EncryptedPayload, FieldCodec
from localvault.core.errors import (
    InvalidInputError,
    MalformedPayloadError,
    NotInitializedError,
    StorageUnavailableError,
)
from localvault.core.keys import KDF_ALGORITHM, SALT_LEN, KeyManager
from localvault.core.types import (
    Conversation,
    ConversationSummary,
    Document,
    DocumentSummary,
    Message,
    MessageList,
    UserContext,
    VaultStats,
)
from localvault.storage.db import database_size, open_connection, resolve_db_path
from localvault.storage.repos import (
    ContextRepo,
    ConversationsRepo,
    DocumentsRepo,
    KdfParams,
    MetaRepo,
)

# Version written to encryption_version for new rows
ENCRYPTION_VERSION = 1
SUPPORTED_ENCRYPTION_VERSIONS = frozenset({ENCRYPTION_VERSION})

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _new_id() -> str:
    return str(uuid4())


def _require_id(record_id: str) -> str:
    if not isinstance(record_id, str) or not record_id.strip():
        raise InvalidInputError(f"Invalid record id: {record_id!r}")
    return record_id


def _check_version(version: int, record_id: str) -> None:
    if version not in SUPPORTED_ENCRYPTION_VERSIONS:
        raise MalformedPayloadError(
            f"Record {record_id} uses unsupported encryption version {version}"
        )


class VaultStore:
    """Session object owning one vault database connection and one live key.

    Lifecycle: ``initialize(passphrase)`` -> CRUD -> ``close()``.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        key_manager: KeyManager | None = None,
    ):
        """
        Initialize the store without touching disk.

        Args:
            db_path: Path to SQLite database (defaults to ~/.localvault/vault.db)
            key_manager: KeyManager to use (a new one is created if omitted)
        """
        self.db_path = resolve_db_path(db_path)
        self.key_manager = key_manager or KeyManager()
        self.codec = FieldCodec(self.key_manager)
        self._connection: sqlite3.Connection | None = None
        self._connection_lock = Lock()

    @property
    def is_open(self) -> bool:
        """Check if the database is open and a key is available."""
        return self._connection is not None and self.key_manager.is_unlocked

    # Session boundary

    def initialize(self, passphrase: str) -> None:
        """
        Open the vault: create schema if needed and derive the key.

        The first open of a new vault generates and persists the KDF salt;
        later opens reuse it so the same passphrase yields the same key.
        A wrong passphrase is only detected when a record is decrypted.

        Args:
            passphrase: User's passphrase

        Raises:
            InvalidInputError: If the passphrase is empty
            MalformedPayloadError: If the stored KDF parameters are corrupt
            StorageUnavailableError: If the database cannot be opened
        """
        if not passphrase:
            raise InvalidInputError("Passphrase must not be empty")

        with self._connection_lock:
            opened_here = self._connection is None
            if opened_here:
                self._connection = open_connection(self.db_path)
            conn = self._connection

            try:
                meta = MetaRepo(conn)
                params = meta.get_kdf_params()
                created = False
                if params is None:
                    params, created = self._create_kdf_params(conn, meta)
                if params.algorithm != KDF_ALGORITHM:
                    raise MalformedPayloadError(
                        f"Unsupported KDF algorithm: {params.algorithm}"
                    )
                self.key_manager.derive_key(
                    passphrase, salt=params.salt, iterations=params.iterations
                )
                if created:
                    logger.info("Created new vault at %s", self.db_path)
                else:
                    logger.info("Opened vault at %s", self.db_path)
            except sqlite3.Error as exc:
                conn.rollback()
                if opened_here:
                    conn.close()
                    self._connection = None
                raise StorageUnavailableError(
                    f"Cannot read vault metadata from {self.db_path}: {exc}"
                ) from exc
            except Exception:
                conn.rollback()
                if opened_here:
                    conn.close()
                    self._connection = None
                raise

    def _create_kdf_params(
        self, conn: sqlite3.Connection, meta: MetaRepo
    ) -> tuple[KdfParams, bool]:
        """
        Persist KDF parameters for a fresh vault under the write lock.

        A concurrent first open may win the race; whatever is stored after
        the transaction is what every opener derives from.

        Returns:
            (stored params, True if this call wrote them)
        """
        iterations = self.key_manager.iterations
        if iterations < config.MIN_KDF_ITERATIONS:
            raise InvalidInputError(
                f"KDF iterations must be at least {config.MIN_KDF_ITERATIONS}, got {iterations}"
            )
        candidate = KdfParams(
            salt=os.urandom(SALT_LEN),
            iterations=iterations,
            algorithm=KDF_ALGORITHM,
        )
        conn.execute("BEGIN IMMEDIATE")
        stored = meta.init_kdf_params(candidate)
        conn.commit()
        return stored, stored == candidate

    def close(self) -> None:
        """Flush and close the database, then clear the key. Safe to call twice."""
        with self._connection_lock:
            conn, self._connection = self._connection, None
            if conn is not None:
                try:
                    conn.commit()
                finally:
                    conn.close()
                logger.info("Closed vault at %s", self.db_path)
        self.key_manager.clear()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Hold the connection lock for one transaction."""
        with self._connection_lock:
            if self._connection is None:
                raise NotInitializedError("Vault is not open. Call initialize() first.")
            try:
                yield self._connection
                self._connection.commit()
            except sqlite3.Error as exc:
                self._connection.rollback()
                raise StorageUnavailableError(f"Vault storage error: {exc}") from exc
            except Exception:
                self._connection.rollback()
                raise

    # Field helpers

    def _encode_messages(self, messages: Iterable[Message | dict[str, Any]]) -> EncryptedPayload:
        try:
            validated = MessageList.validate_python(list(messages))
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid messages: {exc}") from exc
        return self.codec.encode_bytes(MessageList.dump_json(validated))

    def _decode_messages(self, payload: EncryptedPayload) -> list[Message]:
        data = self.codec.decode_bytes(payload)
        try:
            return MessageList.validate_json(data)
        except ValidationError as exc:
            raise MalformedPayloadError("Stored messages are not a valid message list") from exc

    def _decode_mapping(self, payload: EncryptedPayload) -> dict[str, Any]:
        value = self.codec.decode_json(payload)
        if not isinstance(value, dict):
            raise MalformedPayloadError("Stored field is not a JSON object")
        return value

    # Conversations

    async def create_conversation(
        self, title: str, messages: Iterable[Message | dict[str, Any]] = ()
    ) -> str:
        """Encrypt and store a new conversation, returning its id."""
        if not isinstance(title, str):
            raise InvalidInputError("Conversation title must be a string")

        encrypted_title = self.codec.encode_text(title)
        encrypted_messages = self._encode_messages(messages)
        conversation_id = _new_id()
        now = _now_ms()

        with self._get_connection() as conn:
            ConversationsRepo(conn).insert(
                conversation_id,
                encrypted_title,
                encrypted_messages,
                created_at=now,
                encryption_version=ENCRYPTION_VERSION,
            )

        logger.debug("Stored conversation %s", conversation_id)
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Fetch and decrypt a conversation; None if it does not exist."""
        _require_id(conversation_id)
        with self._get_connection() as conn:
            row = ConversationsRepo(conn).get_by_id(conversation_id)
        if row is None:
            return None

        _check_version(row.encryption_version, row.id)
        return Conversation(
            id=row.id,
            title=self.codec.decode_text(row.encrypted_title),
            messages=self._decode_messages(row.encrypted_messages),
            created_at=row.created_at,
            last_modified=row.last_modified,
        )

    async def list_conversations(self) -> list[ConversationSummary]:
        """List conversations newest-modified first, decrypting titles only."""
        with self._get_connection() as conn:
            rows = ConversationsRepo(conn).list_headers()

        summaries = []
        for row in rows:
            _check_version(row.encryption_version, row.id)
            summaries.append(
                ConversationSummary(
                    id=row.id,
                    title=self.codec.decode_text(row.encrypted_title),
                    created_at=row.created_at,
                    last_modified=row.last_modified,
                )
            )
        return summaries

    async def update_conversation(
        self, conversation_id: str, messages: Iterable[Message | dict[str, Any]]
    ) -> bool:
        """
        Replace a conversation's messages and bump last_modified.

        Returns:
            False (and changes nothing) if the id does not exist
        """
        _require_id(conversation_id)
        encrypted_messages = self._encode_messages(messages)

        with self._get_connection() as conn:
            updated = ConversationsRepo(conn).update_messages(
                conversation_id, encrypted_messages, last_modified=_now_ms()
            )

        if not updated:
            logger.debug("Update skipped, no conversation %s", conversation_id)
        return updated

    async def rename_conversation(self, conversation_id: str, title: str) -> bool:
        """Replace a conversation's title. False if the id does not exist."""
        _require_id(conversation_id)
        if not isinstance(title, str):
            raise InvalidInputError("Conversation title must be a string")
        encrypted_title = self.codec.encode_text(title)

        with self._get_connection() as conn:
            return ConversationsRepo(conn).update_title(
                conversation_id, encrypted_title, last_modified=_now_ms()
            )

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation. Missing ids are a silent no-op."""
        _require_id(conversation_id)
        with self._get_connection() as conn:
            deleted = ConversationsRepo(conn).delete(conversation_id)
        if deleted:
            logger.debug("Deleted conversation %s", conversation_id)
        return deleted

    # Documents

    async def create_document(
        self, content: bytes | str, metadata: dict[str, Any] | None = None
    ) -> str:
        """
        Encrypt and store a document.

        Args:
            content: Raw document bytes (str is stored as UTF-8)
            metadata: JSON-serializable metadata such as filename or mime type

        Returns:
            The new document id
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        if not isinstance(content, (bytes, bytearray)):
            raise InvalidInputError("Document content must be bytes or str")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidInputError("Document metadata must be a mapping")

        file_hash = hashlib.sha256(content).hexdigest()
        encrypted_content = self.codec.encode_bytes(bytes(content))
        encrypted_metadata = self.codec.encode_json(metadata or {})
        document_id = _new_id()

        with self._get_connection() as conn:
            DocumentsRepo(conn).insert(
                document_id,
                encrypted_content,
                encrypted_metadata,
                file_hash=file_hash,
                created_at=_now_ms(),
                encryption_version=ENCRYPTION_VERSION,
            )

        logger.debug("Stored document %s", document_id)
        return document_id

    async def get_document(self, document_id: str) -> Document | None:
        """Fetch and decrypt a document; None if it does not exist."""
        _require_id(document_id)
        with self._get_connection() as conn:
            row = DocumentsRepo(conn).get_by_id(document_id)
        if row is None:
            return None

        _check_version(row.encryption_version, row.id)
        return Document(
            id=row.id,
            content=self.codec.decode_bytes(row.encrypted_content),
            metadata=self._decode_mapping(row.encrypted_metadata),
            file_hash=row.file_hash,
            created_at=row.created_at,
        )

    async def list_documents(self) -> list[DocumentSummary]:
        """List documents newest first, decrypting metadata only."""
        with self._get_connection() as conn:
            rows = DocumentsRepo(conn).list_headers()

        summaries = []
        for row in rows:
            _check_version(row.encryption_version, row.id)
            summaries.append(
                DocumentSummary(
                    id=row.id,
                    metadata=self._decode_mapping(row.encrypted_metadata),
                    file_hash=row.file_hash,
                    created_at=row.created_at,
                )
            )
        return summaries

    async def find_documents_by_hash(self, file_hash: str) -> list[str]:
        """Ids of documents with the given sha256 content hash."""
        if not isinstance(file_hash, str) or not file_hash.strip():
            raise InvalidInputError(f"Invalid file hash: {file_hash!r}")
        with self._get_connection() as conn:
            return DocumentsRepo(conn).ids_by_hash(file_hash)

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document. Missing ids are a silent no-op."""
        _require_id(document_id)
        with self._get_connection() as conn:
            return DocumentsRepo(conn).delete(document_id)

    # User context

    async def create_context(self, context_type: str, data: dict[str, Any]) -> str:
        """Encrypt and store a user context entry, returning its id."""
        if not isinstance(context_type, str) or not context_type.strip():
            raise InvalidInputError("Context type must be a non-empty string")
        if not isinstance(data, dict):
            raise InvalidInputError("Context data must be a mapping")

        encrypted_data = self.codec.encode_json(data)
        context_id = _new_id()

        with self._get_connection() as conn:
            ContextRepo(conn).insert(
                context_id,
                encrypted_data,
                context_type=context_type,
                created_at=_now_ms(),
                encryption_version=ENCRYPTION_VERSION,
            )
        return context_id

    async def get_context(self, context_id: str) -> UserContext | None:
        """Fetch and decrypt a context entry; None if it does not exist."""
        _require_id(context_id)
        with self._get_connection() as conn:
            row = ContextRepo(conn).get_by_id(context_id)
        if row is None:
            return None

        _check_version(row.encryption_version, row.id)
        return UserContext(
            id=row.id,
            context_type=row.context_type,
            data=self._decode_mapping(row.encrypted_data),
            created_at=row.created_at,
        )

    async def list_contexts(self, context_type: str | None = None) -> list[UserContext]:
        """List context entries newest first, optionally of one type."""
        with self._get_connection() as conn:
            rows = ContextRepo(conn).get_all(context_type)

        contexts = []
        for row in rows:
            _check_version(row.encryption_version, row.id)
            contexts.append(
                UserContext(
                    id=row.id,
                    context_type=row.context_type,
                    data=self._decode_mapping(row.encrypted_data),
                    created_at=row.created_at,
                )
            )
        return contexts

    async def delete_context(self, context_id: str) -> bool:
        """Delete a context entry. Missing ids are a silent no-op."""
        _require_id(context_id)
        with self._get_connection() as conn:
            return ContextRepo(conn).delete(context_id)

    # Stats

    async def stats(self) -> VaultStats:
        """Aggregate record counts and database size."""
        with self._get_connection() as conn:
            return VaultStats(
                conversation_count=ConversationsRepo(conn).count(),
                document_count=DocumentsRepo(conn).count(),
                context_count=ContextRepo(conn).count(),
                total_size_bytes=database_size(conn),
            )
