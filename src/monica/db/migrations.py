"""
Database migrations for the local record store.

Uses SQLite ALTER TABLE ADD COLUMN for incremental schema evolution.
Each migration is idempotent: columns are only added if absent.

Called from init_db() after create_all() so databases created by older
versions pick up new columns without manual steps.
"""
from sqlalchemy import text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times; checks column existence before altering.
    Supports SQLite only (uses PRAGMA table_info).

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # SyncLog: per-sweep counters replaced the single synced count
        _add_column_if_missing(conn, "synclog", "records_failed", "INTEGER DEFAULT 0")
        _add_column_if_missing(conn, "synclog", "records_purged", "INTEGER DEFAULT 0")

        # Debts: display name cached from the nested contact object
        _add_column_if_missing(conn, "debtrecord", "contact_name", "VARCHAR")

        # Relationships: names cached for offline display
        _add_column_if_missing(conn, "relationshiprecord", "relationship_type_name", "VARCHAR")
        _add_column_if_missing(conn, "relationshiprecord", "of_contact_name", "VARCHAR")

        # Call logs: emotion ids
        _add_column_if_missing(conn, "calllogrecord", "emotions_json", "VARCHAR")

        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name (lowercase, as SQLite stores it).
        column: Column name to add.
        col_type: SQLite type string, e.g. "INTEGER", "REAL", "VARCHAR".
    """
    result = conn.execute(text(f"PRAGMA table_info({table})"))
    existing_columns = {row[1] for row in result}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
