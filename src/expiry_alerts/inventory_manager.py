"""Inventory management for Expiry Alerts."""

import json
import sqlite3
from datetime import datetime
from typing import Protocol
from uuid import uuid4

from pydantic import ValidationError

from .data_store import DataStore, DataStoreProtocol
from .expiry_policy import is_expiring
from .models import InventoryItem


class TransientFetchError(Exception):
    """Raised when inventory or scheduler state cannot be read right now."""


class ItemNotFoundError(ValueError):
    """Raised when an inventory item does not exist."""


class InventorySource(Protocol):
    """Read access to the current set of tracked items."""

    async def get_all_items(self) -> list[InventoryItem]: ...
    async def get_expiring_within(self, days: int) -> list[InventoryItem]: ...


class InventoryManager:
    """Manages tracked items and serves them as an inventory source."""

    def __init__(self, data_store: DataStoreProtocol | None = None):
        self.data_store = data_store or DataStore()

    def add_item(
        self,
        name: str,
        expires_at: datetime,
        item_id: str | None = None,
    ) -> InventoryItem:
        """Add an item to inventory.

        Args:
            name: Name of the item
            expires_at: Expiration instant
            item_id: Optional explicit id, generated when omitted

        Returns:
            The created InventoryItem

        Raises:
            ValueError: If an item with the same id exists
        """
        item = InventoryItem(id=item_id or str(uuid4()), name=name, expires_at=expires_at)

        inventory = self.data_store.load_inventory()
        if any(i.id == item.id for i in inventory):
            raise ValueError(f"Inventory item already exists: {item.id}")
        inventory.append(item)
        self.data_store.save_inventory(inventory)
        return item

    def remove_item(self, item_id: str) -> InventoryItem:
        """Remove an item from inventory.

        Args:
            item_id: Id of item to remove

        Returns:
            The removed item

        Raises:
            ItemNotFoundError: If item not found
        """
        inventory = self.data_store.load_inventory()
        for i, item in enumerate(inventory):
            if item.id == item_id:
                removed = inventory.pop(i)
                self.data_store.save_inventory(inventory)
                return removed

        raise ItemNotFoundError(f"Inventory item not found: {item_id}")

    def update_item(
        self,
        item_id: str,
        name: str | None = None,
        expires_at: datetime | None = None,
    ) -> InventoryItem:
        """Update editable inventory fields.

        Args:
            item_id: Id of item
            name: New item name
            expires_at: New expiration instant

        Returns:
            Updated item

        Raises:
            ItemNotFoundError: If item not found
        """
        inventory = self.data_store.load_inventory()
        for index, item in enumerate(inventory):
            if item.id == item_id:
                inventory[index] = InventoryItem(
                    id=item.id,
                    name=name if name is not None else item.name,
                    expires_at=expires_at if expires_at is not None else item.expires_at,
                )
                self.data_store.save_inventory(inventory)
                return inventory[index]

        raise ItemNotFoundError(f"Inventory item not found: {item_id}")

    def get_item(self, item_id: str) -> InventoryItem | None:
        """Look an item up by id."""
        for item in self.data_store.load_inventory():
            if item.id == item_id:
                return item
        return None

    def get_inventory(self) -> list[InventoryItem]:
        """Get all items sorted by expiry."""
        return sorted(self.data_store.load_inventory(), key=lambda i: i.expires_at)

    def get_expiring_soon(self, days: int = 3, now: datetime | None = None) -> list[InventoryItem]:
        """Get items expiring today or within a number of days.

        Args:
            days: Number of days to look ahead
            now: Reference instant, defaults to the current time

        Returns:
            List of expiring items sorted by expiration
        """
        now = now or datetime.now()
        expiring = [
            i for i in self.get_inventory() if is_expiring(i, now, days)
        ]
        return expiring

    # --- InventorySource ---

    async def get_all_items(self) -> list[InventoryItem]:
        """Fetch every tracked item.

        Raises:
            TransientFetchError: If the backing store cannot be read
        """
        try:
            return self.get_inventory()
        except (OSError, json.JSONDecodeError, sqlite3.Error, ValidationError) as e:
            raise TransientFetchError(f"Could not read inventory: {e}") from e

    async def get_expiring_within(self, days: int) -> list[InventoryItem]:
        """Fetch items expiring today or within the next days.

        Raises:
            TransientFetchError: If the backing store cannot be read
        """
        try:
            return self.get_expiring_soon(days=days)
        except (OSError, json.JSONDecodeError, sqlite3.Error, ValidationError) as e:
            raise TransientFetchError(f"Could not read inventory: {e}") from e

