"""Shared test fixtures for Expiry Alerts."""

from datetime import datetime, timedelta
from typing import Any

import pytest

from expiry_alerts.coordinator import SchedulingCoordinator
from expiry_alerts.data_store import DataStore
from expiry_alerts.delivered import DeliveredMarkers
from expiry_alerts.expiry_policy import days_until
from expiry_alerts.inventory_manager import TransientFetchError
from expiry_alerts.localization import CatalogLocalizer
from expiry_alerts.models import InventoryItem, ScheduledNotification
from expiry_alerts.platform_scheduler import SchedulingFailure

# Tuesday, 10:00 local time: after the 09:00 reminder slot.
NOW = datetime(2026, 3, 10, 10, 0)


def make_item(item_id: str, days: int, name: str | None = None, hour: int = 18) -> InventoryItem:
    """Item expiring a number of calendar days after NOW."""
    expires = (NOW + timedelta(days=days)).replace(hour=hour, minute=0)
    return InventoryItem(id=item_id, name=name or item_id.capitalize(), expires_at=expires)


def scheduled_entry(item_id: str, offset: int, fire_at: datetime | None = None) -> ScheduledNotification:
    """A pending expiry reminder as the platform would list it."""
    return ScheduledNotification(
        id=f"expiry-{item_id}-{offset}",
        title="Reminder",
        body="",
        fire_at=fire_at or NOW + timedelta(days=1),
        payload={
            "item_id": item_id,
            "item_name": item_id,
            "offset_days": offset,
            "kind": "expiry-alert",
        },
    )


class MemoryStore:
    """In-memory key-value store."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.fail = False

    def get_string(self, key: str) -> str | None:
        if self.fail:
            raise OSError("storage unavailable")
        return self.values.get(key)

    def set_string(self, key: str, value: str) -> None:
        if self.fail:
            raise OSError("storage unavailable")
        self.values[key] = value


class FakeInventory:
    """Inventory source with failure injection."""

    def __init__(self, items: list[InventoryItem] | None = None):
        self.items = list(items or [])
        self.fail = False

    async def get_all_items(self) -> list[InventoryItem]:
        if self.fail:
            raise TransientFetchError("backend unreachable")
        return list(self.items)

    async def get_expiring_within(self, days: int) -> list[InventoryItem]:
        items = await self.get_all_items()
        return [i for i in items if 0 <= days_until(i.expires_at, NOW) <= days]


class FakeScheduler:
    """Platform scheduler holding entries in memory."""

    def __init__(self, entries: list[ScheduledNotification] | None = None):
        self.entries = list(entries or [])
        self.fail_ids: set[str] = set()
        self.fail_list = False
        self.schedule_calls: list[str] = []
        self.cancel_calls: list[str] = []

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.entries]

    async def list_scheduled(self) -> list[ScheduledNotification]:
        if self.fail_list:
            raise TransientFetchError("scheduler unavailable")
        return list(self.entries)

    async def schedule(
        self,
        notification_id: str,
        title: str,
        body: str,
        fire_at: datetime,
        payload: dict[str, Any],
    ) -> None:
        self.schedule_calls.append(notification_id)
        if notification_id in self.fail_ids:
            raise SchedulingFailure(f"rejected {notification_id}")
        self.entries = [e for e in self.entries if e.id != notification_id]
        self.entries.append(
            ScheduledNotification(
                id=notification_id, title=title, body=body, fire_at=fire_at, payload=payload
            )
        )

    async def cancel(self, notification_id: str) -> None:
        self.cancel_calls.append(notification_id)
        if notification_id in self.fail_ids:
            raise SchedulingFailure(f"rejected cancel {notification_id}")
        self.entries = [e for e in self.entries if e.id != notification_id]


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def inventory():
    return FakeInventory()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def delivered(memory_store):
    return DeliveredMarkers(memory_store)


@pytest.fixture
def coordinator(inventory, scheduler, delivered):
    """Coordinator over in-memory collaborators."""
    return SchedulingCoordinator(
        inventory=inventory,
        scheduler=scheduler,
        delivered=delivered,
        localizer=CatalogLocalizer("en"),
    )
