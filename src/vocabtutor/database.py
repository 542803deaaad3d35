import os
import sqlite3
from typing import Dict, Optional

from .config import settings
from .errors import PersistenceError


def get_db_connection(db_path: Optional[str] = None):
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(db_path or settings.db_path)
    conn.row_factory = sqlite3.Row
    return conn


def create_log_table(db_path: Optional[str] = None):
    """Creates the log table if it doesn't exist."""
    conn = get_db_connection(db_path)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                level TEXT,
                message TEXT
            );
        """
        )
    conn.close()


def create_kv_table(db_path: Optional[str] = None):
    """Creates the key-value table holding serialized progress records."""
    conn = get_db_connection(db_path)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """
        )
    conn.close()


def write_log(level: str, message: str, db_path: Optional[str] = None):
    """Appends one row to the log table."""
    conn = get_db_connection(db_path)
    try:
        with conn:
            conn.execute(
                "INSERT INTO logs (level, message) VALUES (?, ?)", (level, message)
            )
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None):
    """Initializes the database and creates necessary tables."""
    db_path = db_path or settings.db_path
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    create_log_table(db_path)
    create_kv_table(db_path)


class SQLiteKeyValueBackend:
    """Key-value storage where each key holds one text value."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or settings.db_path

    def get(self, key: str) -> Optional[str]:
        try:
            conn = get_db_connection(self.db_path)
            try:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read {key}: {e}") from e
        return row["value"] if row else None

    def set(self, key: str, value: str):
        try:
            conn = get_db_connection(self.db_path)
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO kv_store (key, value) VALUES (?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = CURRENT_TIMESTAMP
                    """,
                        (key, value),
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write {key}: {e}") from e


class MemoryKeyValueBackend:
    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str):
        self.data[key] = value


def create_backend():
    if settings.STORAGE_BACKEND == "memory":
        return MemoryKeyValueBackend()
    return SQLiteKeyValueBackend(settings.db_path)
