"""Entry points the rest of the application calls.

Hooks never raise. A reminder is best effort: any failure is logged and the
next trigger gets another chance.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from .config import ConfigManager
from .coordinator import SchedulingCoordinator
from .data_store import DataStoreProtocol
from .delivered import DeliveredMarkers
from .inventory_manager import InventoryManager
from .localization import CatalogLocalizer
from .models import CycleResult, InventoryItem
from .planner import NotificationPlanner
from .platform_scheduler import LocalNotificationScheduler
from .triggers import PeriodicTask, RunThrottle

logger = logging.getLogger(__name__)


class ExpiryNotificationHooks:
    """Lifecycle hooks around a scheduling coordinator."""

    def __init__(
        self,
        coordinator: SchedulingCoordinator,
        throttle: RunThrottle,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.coordinator = coordinator
        self.throttle = throttle
        self.clock = clock

    async def on_item_added(self, item: InventoryItem) -> CycleResult:
        return await self._guard(
            f"schedule reminders for new item {item.name!r}",
            lambda: self.coordinator.run_for_item(item, self.clock()),
        )

    async def on_item_updated(self, item: InventoryItem) -> CycleResult:
        """Reschedule an edited item; its delivered reminders stay delivered."""
        return await self._guard(
            f"update reminders for item {item.name!r}",
            lambda: self.coordinator.run_for_item(item, self.clock(), replace=True),
        )

    async def on_item_deleted(self, item_id: str) -> CycleResult:
        return await self._guard(
            f"remove reminders for deleted item {item_id}",
            lambda: self.coordinator.cancel_for_item(item_id),
        )

    async def on_periodic_trigger(self) -> CycleResult:
        """Run a full check regardless of the throttle."""
        now = self.clock()
        result = await self._guard(
            "run expiry check", lambda: self.coordinator.run_full_cycle(now)
        )
        if not result.aborted:
            self._record_run(now)
        return result

    async def on_app_foreground(self) -> CycleResult | None:
        """Run a full check unless one ran recently.

        Returns:
            The cycle result, or None when throttled
        """
        now = self.clock()
        try:
            due = self.throttle.should_run(now)
        except Exception:
            logger.exception("Could not read last expiry check time")
            due = True
        if not due:
            logger.debug("Skipping expiry check, last run at %s", self.throttle.last_run())
            return None
        return await self.on_periodic_trigger()

    async def on_notification_delivered(self, notification_id: str) -> None:
        try:
            self.coordinator.mark_delivered(notification_id)
        except Exception:
            logger.exception("Failed to mark %s as delivered", notification_id)

    def _record_run(self, now: datetime) -> None:
        try:
            self.throttle.record_run(now)
        except Exception:
            logger.exception("Failed to record expiry check time")

    async def _guard(
        self, action: str, run: Callable[[], Awaitable[CycleResult]]
    ) -> CycleResult:
        try:
            return await run()
        except Exception as e:
            logger.exception("Failed to %s", action)
            return CycleResult(aborted=True, reason=str(e))


def build_hooks(
    config: ConfigManager,
    data_store: DataStoreProtocol,
    clock: Callable[[], datetime] = datetime.now,
) -> ExpiryNotificationHooks:
    """Wire the scheduler stack once at startup.

    Args:
        config: Application configuration
        data_store: Backing store for inventory, markers and pending notifications
        clock: Source of the current time

    Returns:
        Hooks ready to hand to the rest of the application
    """
    sched = config.scheduler
    coordinator = SchedulingCoordinator(
        inventory=InventoryManager(data_store),
        scheduler=LocalNotificationScheduler(data_store, limit=sched.platform_limit),
        delivered=DeliveredMarkers(data_store),
        localizer=CatalogLocalizer(config.localization.locale),
        planner=NotificationPlanner(
            offsets=sched.offsets,
            notify_hour=sched.notify_hour,
            immediate_delay_seconds=sched.immediate_delay_seconds,
        ),
        ceiling=sched.ceiling,
        max_replacements=sched.max_replacements,
    )
    throttle = RunThrottle(
        data_store, timedelta(hours=config.triggers.foreground_interval_hours)
    )
    return ExpiryNotificationHooks(coordinator, throttle, clock=clock)


def periodic_task(hooks: ExpiryNotificationHooks, config: ConfigManager) -> PeriodicTask:
    """Background task running the full check on the configured interval."""
    return PeriodicTask(
        hooks.on_periodic_trigger,
        timedelta(hours=config.triggers.periodic_interval_hours),
    )
