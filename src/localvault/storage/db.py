"""SQLite database connection and initialization."""

import logging
import sqlite3
from pathlib import Path

from localvault.core import config
from localvault.core.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

# Migrations directory
MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Seconds a connection waits on another writer before giving up
BUSY_TIMEOUT = 10.0


def _split_statements(sql: str) -> list[str]:
    """Split a migration script into complete SQL statements."""
    statements = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statements.append(buffer.strip())
            buffer = ""
    if buffer.strip():
        statements.append(buffer.strip())
    return statements


def _run_migrations(conn: sqlite3.Connection) -> None:
    """
    Run pending database migrations.

    Everything happens in one IMMEDIATE transaction, so concurrent openers
    of a fresh database queue on the write lock and apply each file once.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        # Create migrations tracking table if not exists
        conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                applied_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Get applied migrations
        applied = {
            row[0] for row in conn.execute("SELECT name FROM _migrations").fetchall()
        }

        for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
            if migration_file.name in applied:
                continue

            logger.info("Applying migration: %s", migration_file.name)
            # executescript would commit the open transaction first
            for statement in _split_statements(migration_file.read_text()):
                conn.execute(statement)
            conn.execute(
                "INSERT OR IGNORE INTO _migrations (name) VALUES (?)",
                (migration_file.name,),
            )
            logger.info("Migration applied: %s", migration_file.name)

        conn.commit()
    except Exception:
        conn.rollback()
        raise


def resolve_db_path(db_path: Path | str | None = None) -> Path:
    """Return the given path, or the configured default."""
    return Path(db_path) if db_path else config.DATABASE_PATH


def open_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Open a connection and bring the schema up to date.

    Args:
        db_path: Path to SQLite database (defaults to DATABASE_PATH)

    Returns:
        SQLite connection with row factory enabled

    Raises:
        StorageUnavailableError: If the database cannot be opened or migrated
    """
    path = resolve_db_path(db_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT, check_same_thread=False)
    except (OSError, sqlite3.Error) as exc:
        raise StorageUnavailableError(f"Cannot open vault database {path}: {exc}") from exc

    try:
        conn.row_factory = sqlite3.Row
        # Enable WAL mode for better concurrent access
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA synchronous=NORMAL")

        _run_migrations(conn)
    except (OSError, sqlite3.Error) as exc:
        conn.close()
        raise StorageUnavailableError(
            f"Cannot initialize vault database {path}: {exc}"
        ) from exc

    logger.debug("Opened vault database %s", path)
    return conn


def database_size(conn: sqlite3.Connection) -> int:
    """Return the database size in bytes (page_count * page_size)."""
    page_count = conn.execute("PRAGMA page_count").fetchone()[0]
    page_size = conn.execute("PRAGMA page_size").fetchone()[0]
    return int(page_count) * int(page_size)
