"""Expiry classification rules.

Pure functions deciding which reminder offsets apply to an item at a given
moment and how urgent each offset is. Day counting works on calendar days in
local time: both instants are truncated to midnight before differencing.
"""

from collections.abc import Iterable
from datetime import datetime

from .models import InventoryItem, to_local

DEFAULT_OFFSETS: tuple[int, ...] = (3, 1, 0)

# Lower is more urgent.
OFFSET_PRIORITY = {0: 0, 1: 1, 3: 2}
DEFAULT_PRIORITY = 3


def days_until(expires_at: datetime, now: datetime) -> int:
    """Calendar days from now until expiry (negative once expired)."""
    return (to_local(expires_at).date() - to_local(now).date()).days


def due_offsets(
    item: InventoryItem,
    now: datetime,
    offsets: Iterable[int] = DEFAULT_OFFSETS,
) -> set[int]:
    """Offsets that should have a reminder right now.

    Once an item is inside the reminder window (at most the largest offset
    away) every offset is due, so the whole run of reminders gets scheduled
    at once; the planner drops those whose day already passed. Further out,
    only the earliest reminder is due: an item 5 days out is due for {3}.
    Expired items are due for nothing.

    Args:
        item: Inventory item to classify
        now: Current instant
        offsets: Days-before-expiry reminder schedule

    Returns:
        Set of due offsets
    """
    remaining = days_until(item.expires_at, now)
    if remaining < 0:
        return set()

    schedule = set(offsets)
    if remaining <= max(schedule):
        return schedule
    return {max(schedule)}


def priority(offset_days: int | None) -> int:
    """Urgency rank of an offset, 0 being the most urgent."""
    if offset_days is None:
        return DEFAULT_PRIORITY
    return OFFSET_PRIORITY.get(offset_days, DEFAULT_PRIORITY)


def is_expiring(item: InventoryItem, now: datetime, window: int = 3) -> bool:
    """Check if an item expires today or within the window."""
    return 0 <= days_until(item.expires_at, now) <= window
