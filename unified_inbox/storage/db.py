"""
SQLite database connection and schema management.

This module provides a simple, synchronous interface for SQLite database
operations with connection management and schema initialization. The
database path is read from config at call time.
"""
import sqlite3
from typing import Any, List, Optional, Tuple

from unified_inbox import config
from unified_inbox.utils.errors import StorageError


def _ensure_db_directory() -> None:
    """Ensure the database directory exists."""
    config.SQLITE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_connection() -> sqlite3.Connection:
    """
    Get a SQLite database connection.

    Returns:
        A sqlite3.Connection with row_factory set to sqlite3.Row.

    Note:
        The connection should be closed by the caller when done.
    """
    _ensure_db_directory()
    conn = sqlite3.connect(config.SQLITE_DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db() -> None:
    """
    Initialize the database schema.

    Creates all required tables if they don't exist. Safe to call on every
    startup.
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()

        # Connected mail accounts; tokens are stored encrypted
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS mail_connections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                provider TEXT NOT NULL,
                email_address TEXT NOT NULL,
                display_name TEXT,
                encrypted_access_token TEXT,
                encrypted_refresh_token TEXT,
                expires_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(provider, email_address)
            )
        """)

        # Key-value application settings
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Knowledge documents uploaded for the AI assistant
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS knowledge_documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                agent_id TEXT,
                filename TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                size_bytes INTEGER NOT NULL,
                local_path TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Chat turns exchanged with the AI endpoint
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS conversation_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_connections_provider
            ON mail_connections(provider)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_conversation_session
            ON conversation_logs(session_id)
        """)

        conn.commit()
    finally:
        conn.close()


def execute(query: str, params: Tuple[Any, ...] = ()) -> sqlite3.Cursor:
    """
    Execute a SQL query and return the cursor.

    Args:
        query: SQL query string.
        params: Query parameters.

    Returns:
        The cursor object (useful for lastrowid and rowcount).
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        conn.commit()
        return cursor
    except sqlite3.Error as e:
        conn.rollback()
        raise StorageError(f"Database write failed: {e}") from e
    finally:
        conn.close()


def fetchall(query: str, params: Tuple[Any, ...] = ()) -> List[sqlite3.Row]:
    """Execute a SELECT query and return all rows."""
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return cursor.fetchall()
    finally:
        conn.close()


def fetchone(query: str, params: Tuple[Any, ...] = ()) -> Optional[sqlite3.Row]:
    """Execute a SELECT query and return the first row, or None."""
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return cursor.fetchone()
    finally:
        conn.close()
