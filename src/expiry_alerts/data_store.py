"""Data persistence for Expiry Alerts.

This module provides data persistence with support for JSON (default) or SQLite backends.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from .models import InventoryItem, ScheduledNotification


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class KeyValueStore(Protocol):
    """Durable string key-value storage."""

    def get_string(self, key: str) -> str | None: ...
    def set_string(self, key: str, value: str) -> None: ...


class DataStoreProtocol(KeyValueStore, Protocol):
    """Protocol defining the data store interface."""

    def load_inventory(self) -> list[InventoryItem]: ...
    def save_inventory(self, items: list[InventoryItem]) -> None: ...
    def load_scheduled(self) -> list[ScheduledNotification]: ...
    def save_scheduled(self, entries: list[ScheduledNotification]) -> None: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def json_decoder(data: dict[str, Any]) -> dict[str, Any]:
    """Decode JSON data back to Python objects."""
    for key, value in data.items():
        if isinstance(value, str) and key in ("expires_at", "fire_at"):
            try:
                data[key] = datetime.fromisoformat(value)
            except ValueError:
                pass
    return data


class DataStore:
    """Manages JSON file persistence for reminder data."""

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _state_path(self) -> Path:
        """Path to key-value state file."""
        return self.data_dir / "state.json"

    def _inventory_path(self) -> Path:
        """Path to inventory file."""
        return self.data_dir / "inventory.json"

    def _scheduled_path(self) -> Path:
        """Path to scheduled notifications file."""
        return self.data_dir / "scheduled_notifications.json"

    # --- Key-Value Operations ---

    def _load_state(self) -> dict[str, str]:
        path = self._state_path()
        if not path.exists():
            return {}

        with open(path) as f:
            return json.load(f)

    def get_string(self, key: str) -> str | None:
        """Get a stored string.

        Args:
            key: Storage key

        Returns:
            Stored value, or None if unset
        """
        return self._load_state().get(key)

    def set_string(self, key: str, value: str) -> None:
        """Store a string under a key.

        Args:
            key: Storage key
            value: Value to store
        """
        state = self._load_state()
        state[key] = value

        with open(self._state_path(), "w") as f:
            json.dump(state, f, indent=2)

    # --- Inventory Operations ---

    def load_inventory(self) -> list[InventoryItem]:
        """Load inventory items.

        Returns:
            List of InventoryItem, empty if file doesn't exist
        """
        path = self._inventory_path()
        if not path.exists():
            return []

        with open(path) as f:
            data = json.load(f, object_hook=json_decoder)

        return [InventoryItem(**item) for item in data]

    def save_inventory(self, items: list[InventoryItem]) -> None:
        """Save inventory items.

        Args:
            items: List of InventoryItem to save
        """
        with open(self._inventory_path(), "w") as f:
            json.dump([i.model_dump() for i in items], f, cls=JSONEncoder, indent=2)

    # --- Scheduled Notification Operations ---

    def load_scheduled(self) -> list[ScheduledNotification]:
        """Load pending scheduled notifications.

        Returns:
            List of ScheduledNotification, empty if file doesn't exist
        """
        path = self._scheduled_path()
        if not path.exists():
            return []

        with open(path) as f:
            data = json.load(f, object_hook=json_decoder)

        return [ScheduledNotification(**entry) for entry in data]

    def save_scheduled(self, entries: list[ScheduledNotification]) -> None:
        """Save pending scheduled notifications.

        Args:
            entries: List of ScheduledNotification to save
        """
        with open(self._scheduled_path(), "w") as f:
            json.dump([e.model_dump() for e in entries], f, cls=JSONEncoder, indent=2)


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> DataStoreProtocol:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/expiry_alerts.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "expiry_alerts.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)
