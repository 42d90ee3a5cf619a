"""
Database connection management.

Provides SQLite connection for the local table store.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "dad_joke.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    The busy timeout lets concurrent handler processes queue on the
    write lock instead of failing immediately.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=10.0)
    conn.execute("PRAGMA busy_timeout = 10000")
    return conn


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the table_entity table if it doesn't exist.

    One physical table holds every logical table; entities are keyed by
    (table_name, partition_key, row_key) and carry an opaque etag that
    changes on every write.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS table_entity (
                table_name TEXT NOT NULL,
                partition_key TEXT NOT NULL,
                row_key TEXT NOT NULL,
                properties TEXT NOT NULL,
                etag TEXT NOT NULL,
                PRIMARY KEY (table_name, partition_key, row_key)
            )
        """)
        conn.commit()
    finally:
        conn.close()
