"""Orchestrates reminder scheduling against the platform scheduler.

The coordinator never locks: a background run and a foreground hook may
overlap. Every step is idempotent instead (deterministic ids, skip when
already scheduled or delivered), so overlapping runs converge.
"""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from .delivered import DeliveredMarkers
from .eviction import EvictionStrategy
from .expiry_policy import days_until
from .inventory_manager import InventorySource, TransientFetchError
from .localization import Localizer
from .models import (
    CycleResult,
    InventoryItem,
    NotificationPlan,
    NotificationStats,
    PriorityBreakdown,
    ScheduledNotification,
)
from .planner import NotificationPlanner, belongs_to, plan_id
from .platform_scheduler import PlatformScheduler, SchedulingFailure

logger = logging.getLogger(__name__)

DEFAULT_CEILING = 60
DEFAULT_MAX_REPLACEMENTS = 10


class SchedulingCoordinator:
    """Runs full and per-item scheduling cycles."""

    def __init__(
        self,
        inventory: InventorySource,
        scheduler: PlatformScheduler,
        delivered: DeliveredMarkers,
        localizer: Localizer,
        planner: NotificationPlanner | None = None,
        eviction: EvictionStrategy | None = None,
        ceiling: int = DEFAULT_CEILING,
        max_replacements: int = DEFAULT_MAX_REPLACEMENTS,
    ):
        """Initialize coordinator.

        Args:
            inventory: Source of tracked items
            scheduler: Platform notification scheduler
            delivered: Persisted delivered-reminder markers
            localizer: Renders reminder titles and bodies
            planner: Plan builder, defaults to the standard schedule
            eviction: Replacement strategy used at the ceiling
            ceiling: Maximum outstanding scheduled notifications
            max_replacements: Maximum evictions per commit
        """
        self.inventory = inventory
        self.scheduler = scheduler
        self.delivered = delivered
        self.localizer = localizer
        self.planner = planner or NotificationPlanner()
        self.eviction = eviction or EvictionStrategy()
        self.ceiling = ceiling
        self.max_replacements = max_replacements

    # --- Cycles ---

    async def run_full_cycle(self, now: datetime | None = None) -> CycleResult:
        """Bring scheduled reminders in line with the whole inventory.

        Reminders that no longer qualify (item gone, offset no longer due,
        or expiry moved to another day) are cancelled; missing ones are
        planned and committed. Nothing is mutated when a fetch fails.
        """
        now = now or datetime.now()
        try:
            items = await self.inventory.get_all_items()
            snapshot = await self.scheduler.list_scheduled()
            delivered_ids = self._load_delivered()
        except TransientFetchError as e:
            logger.warning("Expiry check aborted: %s", e)
            return CycleResult(aborted=True, reason=str(e))

        logger.info("Checking %d item(s) against %d scheduled notification(s)",
                    len(items), len(snapshot))
        result = CycleResult()

        expected = self.planner.expected_days(items, now)
        remaining: list[ScheduledNotification] = []
        for entry in snapshot:
            if entry.is_expiry_alert and self._is_stale(entry, expected):
                if await self._cancel(entry.id, result):
                    continue
            remaining.append(entry)

        plans = self.planner.build_plans(
            items, now, {e.id for e in remaining}, delivered_ids
        )
        result.merge(await self.commit(plans, remaining))
        logger.info(
            "Expiry check done: %d scheduled, %d cancelled, %d evicted, %d failed",
            len(result.scheduled), len(result.cancelled), len(result.evicted), len(result.failed),
        )
        return result

    async def run_for_item(
        self,
        item: InventoryItem,
        now: datetime | None = None,
        replace: bool = False,
    ) -> CycleResult:
        """Schedule reminders for a single item.

        Args:
            item: The added or edited item
            now: Current instant
            replace: Cancel the item's pending reminders first (used on
                update). Delivered markers are kept either way.
        """
        now = now or datetime.now()
        try:
            snapshot = await self.scheduler.list_scheduled()
            delivered_ids = self._load_delivered()
        except TransientFetchError as e:
            logger.warning("Scheduling for %r aborted: %s", item.name, e)
            return CycleResult(aborted=True, reason=str(e))

        result = CycleResult()
        if replace:
            remaining = []
            for entry in snapshot:
                if entry.is_expiry_alert and entry.item_id == item.id:
                    if await self._cancel(entry.id, result):
                        continue
                remaining.append(entry)
            snapshot = remaining

        plans = self.planner.build_plans([item], now, {e.id for e in snapshot}, delivered_ids)
        logger.debug("Planned %d reminder(s) for %r", len(plans), item.name)
        return result.merge(await self.commit(plans, snapshot))

    async def cancel_for_item(self, item_id: str) -> CycleResult:
        """Cancel an item's pending reminders and forget its delivered ones.

        Deletion is the only event that clears delivered markers. When the
        pending list cannot be read, every deterministic id is cancelled.
        """
        result = CycleResult()
        try:
            snapshot = await self.scheduler.list_scheduled()
            ids: Iterable[str] = [
                e.id for e in snapshot if e.is_expiry_alert and e.item_id == item_id
            ]
        except TransientFetchError as e:
            logger.warning("Could not list scheduled notifications, cancelling by id: %s", e)
            ids = [plan_id(item_id, offset) for offset in self.planner.offsets]

        for notification_id in ids:
            await self._cancel(notification_id, result)

        removed = self.delivered.remove_matching(lambda marker: belongs_to(marker, item_id))
        logger.info(
            "Removed reminders for deleted item %s (%d cancelled, %d delivered markers cleared)",
            item_id, len(result.cancelled), len(removed),
        )
        return result

    # --- Commit ---

    async def commit(
        self,
        plans: list[NotificationPlan],
        snapshot: list[ScheduledNotification] | None = None,
    ) -> CycleResult:
        """Schedule plans without exceeding the ceiling.

        When everything fits, all plans are scheduled. Otherwise the free
        slots take the most urgent plans and the rest compete for
        replacement of less urgent pending reminders.

        Args:
            plans: Plans to commit
            snapshot: Current pending list, fetched when omitted
        """
        result = CycleResult()
        if not plans:
            return result

        if snapshot is None:
            try:
                snapshot = await self.scheduler.list_scheduled()
            except TransientFetchError as e:
                logger.warning("Commit aborted: %s", e)
                return CycleResult(aborted=True, reason=str(e))

        outstanding = len(snapshot)
        if outstanding + len(plans) <= self.ceiling:
            for plan in plans:
                await self._schedule(plan, result)
            return result

        ranked = sorted(plans, key=lambda p: p.priority)
        free = max(0, self.ceiling - outstanding)
        direct, overflow = ranked[:free], ranked[free:]
        logger.warning(
            "At notification ceiling (%d/%d), %d plan(s) competing for replacement",
            outstanding, self.ceiling, len(overflow),
        )

        for plan in direct:
            await self._schedule(plan, result)

        decision = self.eviction.evict(overflow, snapshot, self.max_replacements)
        for victim, plan in zip(decision.cancel, decision.schedule):
            if await self._cancel(victim.id, result, evicted=True):
                await self._schedule(plan, result)
                logger.info("Replaced %s with %s", victim.id, plan.id)
            else:
                result.dropped.append(plan.id)

        result.dropped.extend(p.id for p in decision.dropped)
        return result

    async def _schedule(self, plan: NotificationPlan, result: CycleResult) -> bool:
        params = {"item_name": plan.item_name, "days": plan.offset_days}
        title = self.localizer.text(plan.title_key, params)
        body = self.localizer.text(plan.body_key, params)
        try:
            await self.scheduler.schedule(
                plan.id, title, body, plan.fire_at, plan.payload.model_dump()
            )
        except SchedulingFailure as e:
            logger.warning("Failed to schedule %s: %s", plan.id, e)
            result.failed.append(plan.id)
            return False

        logger.debug("Scheduled %s for %s", plan.id, plan.fire_at.isoformat())
        result.scheduled.append(plan.id)
        return True

    async def _cancel(self, notification_id: str, result: CycleResult, evicted: bool = False) -> bool:
        try:
            await self.scheduler.cancel(notification_id)
        except SchedulingFailure as e:
            logger.warning("Failed to cancel %s: %s", notification_id, e)
            result.failed.append(notification_id)
            return False

        (result.evicted if evicted else result.cancelled).append(notification_id)
        return True

    def _is_stale(self, entry: ScheduledNotification, expected: dict[str, date]) -> bool:
        day = expected.get(entry.id)
        if day is None:
            return True
        if entry.fire_at is None or entry.fire_at.date() == day:
            return False
        # Immediate reminders issued just before midnight fire early the next day.
        midnight = datetime.combine(day + timedelta(days=1), time())
        return not midnight <= entry.fire_at <= midnight + self.planner.immediate_delay

    def _load_delivered(self) -> set[str]:
        try:
            return self.delivered.all()
        except (OSError, sqlite3.Error) as e:
            raise TransientFetchError(f"Could not read delivered markers: {e}") from e

    # --- Delivery and reporting ---

    def mark_delivered(self, notification_id: str) -> None:
        """Record that a reminder fired so it is never sent again."""
        self.delivered.add(notification_id)
        logger.info("Marked notification as delivered: %s", notification_id)

    def delivered_ids(self) -> list[str]:
        """Every delivered marker, sorted."""
        return sorted(self.delivered.all())

    async def get_scheduled_summary(self) -> list[ScheduledNotification]:
        """Pending expiry reminders ordered by fire time."""
        snapshot = await self.scheduler.list_scheduled()
        reminders = [e for e in snapshot if e.is_expiry_alert]
        return sorted(reminders, key=lambda e: (e.fire_at or datetime.max, e.id))

    async def get_stats(self, now: datetime | None = None, window: int = 3) -> NotificationStats:
        """Scheduler usage and expiring item counts.

        Raises:
            TransientFetchError: If inventory or scheduler state is unavailable
        """
        now = now or datetime.now()
        snapshot = await self.scheduler.list_scheduled()
        expiring = await self.inventory.get_expiring_within(window)

        remaining = [days_until(item.expires_at, now) for item in expiring]
        return NotificationStats(
            current_count=len(snapshot),
            max_limit=self.ceiling,
            available_slots=max(0, self.ceiling - len(snapshot)),
            expiring_items=len(expiring),
            priority_breakdown=PriorityBreakdown(
                today=remaining.count(0),
                tomorrow=remaining.count(1),
                soon=sum(1 for d in remaining if d >= 2),
            ),
        )
