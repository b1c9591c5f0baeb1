"""Turns inventory items into concrete reminder plans."""

import logging
from collections.abc import Collection, Iterable
from datetime import date, datetime, time, timedelta

from . import expiry_policy
from .localization import message_keys
from .models import InventoryItem, NotificationPayload, NotificationPlan, to_local

logger = logging.getLogger(__name__)


def plan_id(item_id: str, offset_days: int) -> str:
    """Deterministic reminder id for an item and offset."""
    return f"expiry-{item_id}-{offset_days}"


def item_prefix(item_id: str) -> str:
    """Common prefix of every reminder id for an item."""
    return f"expiry-{item_id}-"


def belongs_to(notification_id: str, item_id: str) -> bool:
    """Check if a reminder id was built for the item.

    The prefix alone is not enough: `expiry-milk-` also prefixes the ids of
    an item called `milk-2`.
    """
    prefix = item_prefix(item_id)
    return notification_id.startswith(prefix) and notification_id[len(prefix):].isdigit()


def target_day(item: InventoryItem, offset_days: int) -> date:
    """Calendar day a reminder is meant for."""
    return to_local(item.expires_at).date() - timedelta(days=offset_days)


class NotificationPlanner:
    """Builds reminder plans for items that need them."""

    def __init__(
        self,
        offsets: Iterable[int] = expiry_policy.DEFAULT_OFFSETS,
        notify_hour: int = 9,
        immediate_delay_seconds: int = 5,
    ):
        """Initialize planner.

        Args:
            offsets: Days-before-expiry reminder schedule
            notify_hour: Local hour reminders fire on their target day
            immediate_delay_seconds: Delay for reminders whose slot already
                passed earlier today
        """
        self.offsets = tuple(offsets)
        self.notify_hour = notify_hour
        self.immediate_delay = timedelta(seconds=immediate_delay_seconds)

    def fire_time(self, item: InventoryItem, offset_days: int, now: datetime) -> datetime | None:
        """Compute when a reminder should fire.

        Returns:
            The firing instant, or None when the target day is already over
        """
        now = to_local(now)
        day = target_day(item, offset_days)
        target = datetime.combine(day, time(hour=self.notify_hour))
        if target > now:
            return target
        if day == now.date():
            return now + self.immediate_delay
        return None

    def build_plans(
        self,
        items: Iterable[InventoryItem],
        now: datetime,
        scheduled_ids: Collection[str] = (),
        delivered_ids: Collection[str] = (),
    ) -> list[NotificationPlan]:
        """Plan every missing reminder for the given items.

        Args:
            items: Items to plan for
            now: Current instant
            scheduled_ids: Reminder ids the platform already holds
            delivered_ids: Reminder ids already shown to the user

        Returns:
            New plans, at most one per (item, offset)
        """
        plans: dict[str, NotificationPlan] = {}

        for item in items:
            for offset in sorted(expiry_policy.due_offsets(item, now, self.offsets)):
                pid = plan_id(item.id, offset)
                if pid in plans:
                    continue
                if pid in scheduled_ids:
                    logger.debug("%s already scheduled", pid)
                    continue
                if pid in delivered_ids:
                    logger.debug("%s already delivered", pid)
                    continue

                fire_at = self.fire_time(item, offset, now)
                if fire_at is None:
                    logger.debug("Skipping %s for %r: target day has passed", pid, item.name)
                    continue

                title_key, body_key = message_keys(offset)
                plans[pid] = NotificationPlan(
                    id=pid,
                    item_id=item.id,
                    item_name=item.name,
                    offset_days=offset,
                    fire_at=fire_at,
                    priority=expiry_policy.priority(offset),
                    title_key=title_key,
                    body_key=body_key,
                    payload=NotificationPayload(
                        item_id=item.id,
                        item_name=item.name,
                        offset_days=offset,
                    ),
                )

        return list(plans.values())

    def expected_days(self, items: Iterable[InventoryItem], now: datetime) -> dict[str, date]:
        """Target day of every reminder the items currently qualify for.

        Used to recognise scheduled reminders that went stale.
        """
        expected: dict[str, date] = {}
        for item in items:
            for offset in expiry_policy.due_offsets(item, now, self.offsets):
                if self.fire_time(item, offset, now) is not None:
                    expected[plan_id(item.id, offset)] = target_day(item, offset)
        return expected
