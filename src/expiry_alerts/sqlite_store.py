"""SQLite-based data persistence for Expiry Alerts.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from .models import InventoryItem, ScheduledNotification


class SQLiteStore:
    """Manages SQLite database persistence for reminder data."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/expiry_alerts.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "expiry_alerts.db"
        self.db_path = db_path
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Key-value state (delivered markers, last run timestamps)
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                -- Tracked inventory
                CREATE TABLE IF NOT EXISTS inventory (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                );

                -- Pending local notifications
                CREATE TABLE IF NOT EXISTS scheduled_notifications (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    body TEXT NOT NULL DEFAULT '',
                    fire_at TEXT,
                    payload TEXT NOT NULL DEFAULT '{}'
                );

                CREATE INDEX IF NOT EXISTS idx_inventory_expires
                    ON inventory(expires_at);
            """)
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    # --- Key-Value Operations ---

    def get_string(self, key: str) -> str | None:
        """Get a stored string.

        Args:
            key: Storage key

        Returns:
            Stored value, or None if unset
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def set_string(self, key: str, value: str) -> None:
        """Store a string under a key.

        Args:
            key: Storage key
            value: Value to store
        """
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    # --- Inventory Operations ---

    def load_inventory(self) -> list[InventoryItem]:
        """Load inventory items.

        Returns:
            List of InventoryItem ordered by expiry
        """
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM inventory ORDER BY expires_at").fetchall()

            return [
                InventoryItem(
                    id=row["id"],
                    name=row["name"],
                    expires_at=datetime.fromisoformat(row["expires_at"]),
                )
                for row in rows
            ]

    def save_inventory(self, items: list[InventoryItem]) -> None:
        """Save inventory items.

        Args:
            items: List of InventoryItem to save
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM inventory")

            for item in items:
                conn.execute(
                    "INSERT INTO inventory (id, name, expires_at) VALUES (?, ?, ?)",
                    (item.id, item.name, item.expires_at.isoformat()),
                )

    # --- Scheduled Notification Operations ---

    def load_scheduled(self) -> list[ScheduledNotification]:
        """Load pending scheduled notifications.

        Returns:
            List of ScheduledNotification ordered by fire time
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM scheduled_notifications ORDER BY fire_at, id"
            ).fetchall()

            return [
                ScheduledNotification(
                    id=row["id"],
                    title=row["title"],
                    body=row["body"],
                    fire_at=datetime.fromisoformat(row["fire_at"]) if row["fire_at"] else None,
                    payload=json.loads(row["payload"]),
                )
                for row in rows
            ]

    def save_scheduled(self, entries: list[ScheduledNotification]) -> None:
        """Save pending scheduled notifications.

        Args:
            entries: List of ScheduledNotification to save
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM scheduled_notifications")

            for entry in entries:
                conn.execute(
                    """
                    INSERT INTO scheduled_notifications (id, title, body, fire_at, payload)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        entry.id,
                        entry.title,
                        entry.body,
                        entry.fire_at.isoformat() if entry.fire_at else None,
                        json.dumps(entry.payload),
                    ),
                )
