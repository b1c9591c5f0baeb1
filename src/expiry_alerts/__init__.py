"""Expiry Alerts - Local reminders before pantry items expire."""

from .config import ConfigManager
from .coordinator import SchedulingCoordinator
from .data_store import BackendType, create_data_store, DataStore, KeyValueStore
from .delivered import DeliveredMarkers
from .eviction import EvictionResult, EvictionStrategy
from .expiry_policy import days_until, due_offsets, priority
from .inventory_manager import (
    InventoryManager,
    InventorySource,
    ItemNotFoundError,
    TransientFetchError,
)
from .lifecycle import build_hooks, ExpiryNotificationHooks
from .localization import CatalogLocalizer, Localizer
from .models import (
    CycleResult,
    InventoryItem,
    NotificationPayload,
    NotificationPlan,
    NotificationStats,
    PriorityBreakdown,
    ScheduledNotification,
)
from .planner import NotificationPlanner, plan_id
from .platform_scheduler import LocalNotificationScheduler, PlatformScheduler, SchedulingFailure
from .sqlite_store import SQLiteStore
from .triggers import PeriodicTask, RunThrottle

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "build_hooks",
    "CatalogLocalizer",
    "ConfigManager",
    "create_data_store",
    "CycleResult",
    "DataStore",
    "days_until",
    "DeliveredMarkers",
    "due_offsets",
    "EvictionResult",
    "EvictionStrategy",
    "ExpiryNotificationHooks",
    "InventoryItem",
    "InventoryManager",
    "InventorySource",
    "ItemNotFoundError",
    "KeyValueStore",
    "LocalNotificationScheduler",
    "Localizer",
    "NotificationPayload",
    "NotificationPlan",
    "NotificationPlanner",
    "NotificationStats",
    "PeriodicTask",
    "PlatformScheduler",
    "plan_id",
    "priority",
    "PriorityBreakdown",
    "RunThrottle",
    "ScheduledNotification",
    "SchedulingCoordinator",
    "SchedulingFailure",
    "SQLiteStore",
    "TransientFetchError",
]
