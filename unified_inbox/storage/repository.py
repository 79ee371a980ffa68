"""
Generic persistence helpers for the local tables.

Exposes select/insert/update/delete over a fixed set of tables. Table and
column names are checked against a whitelist before they reach SQL; values
are always bound as parameters.
"""
from typing import Any, Dict, List, Optional, Sequence

from unified_inbox.storage import db
from unified_inbox.utils.errors import StorageError


TABLE_COLUMNS: Dict[str, Sequence[str]] = {
    "mail_connections": (
        "id", "provider", "email_address", "display_name",
        "encrypted_access_token", "encrypted_refresh_token",
        "expires_at", "created_at", "updated_at",
    ),
    "settings": ("key", "value", "updated_at"),
    "knowledge_documents": (
        "id", "agent_id", "filename", "mime_type", "size_bytes",
        "local_path", "status", "uploaded_at",
    ),
    "conversation_logs": ("id", "session_id", "role", "content", "created_at"),
}


def _check_table(table: str) -> Sequence[str]:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise StorageError(f"Unknown table: {table}") from None


def _check_columns(table: str, columns) -> None:
    allowed = _check_table(table)
    for column in columns:
        if column not in allowed:
            raise StorageError(f"Unknown column {column!r} for table {table}")


def _where(filters: Optional[Dict[str, Any]]):
    if not filters:
        return "", ()
    clause = " AND ".join(f"{column} = ?" for column in filters)
    return f" WHERE {clause}", tuple(filters.values())


def select(
    table: str,
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Select rows as plain dicts.

    Args:
        table: Table name.
        filters: Equality filters combined with AND.
        order_by: Optional column to sort by.
        descending: Sort direction when order_by is given.
        limit: Optional maximum number of rows.
    """
    _check_columns(table, (filters or {}).keys())
    where, params = _where(filters)
    query = f"SELECT * FROM {table}{where}"
    if order_by:
        _check_columns(table, [order_by])
        query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
    if limit is not None:
        query += " LIMIT ?"
        params = params + (int(limit),)
    return [dict(row) for row in db.fetchall(query, params)]


def select_one(table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    rows = select(table, filters, limit=1)
    return rows[0] if rows else None


def insert(table: str, values: Dict[str, Any], replace: bool = False) -> int:
    """
    Insert one row and return its rowid.

    Args:
        replace: Use INSERT OR REPLACE (upsert on the primary/unique key).
    """
    if not values:
        raise StorageError("Nothing to insert")
    _check_columns(table, values.keys())
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    cursor = db.execute(
        f"{verb} INTO {table} ({columns}) VALUES ({placeholders})",
        tuple(values.values()),
    )
    return cursor.lastrowid


def update(table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> int:
    """Update matching rows and return the number of rows changed."""
    if not values:
        raise StorageError("Nothing to update")
    if not filters:
        raise StorageError("Refusing to update without filters")
    _check_columns(table, list(values.keys()) + list(filters.keys()))
    assignments = ", ".join(f"{column} = ?" for column in values)
    where, params = _where(filters)
    cursor = db.execute(
        f"UPDATE {table} SET {assignments}{where}",
        tuple(values.values()) + params,
    )
    return cursor.rowcount


def delete(table: str, filters: Dict[str, Any]) -> int:
    """Delete matching rows and return the number of rows removed."""
    if not filters:
        raise StorageError("Refusing to delete without filters")
    _check_columns(table, filters.keys())
    where, params = _where(filters)
    cursor = db.execute(f"DELETE FROM {table}{where}", params)
    return cursor.rowcount
