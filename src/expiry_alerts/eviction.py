"""Priority-based replacement when the scheduler is full."""

import logging
from dataclasses import dataclass, field

from . import expiry_policy
from .models import NotificationPlan, ScheduledNotification

logger = logging.getLogger(__name__)


@dataclass
class EvictionResult:
    """Replacement decisions for one cycle.

    `cancel[i]` makes room for `schedule[i]`.
    """

    cancel: list[ScheduledNotification] = field(default_factory=list)
    schedule: list[NotificationPlan] = field(default_factory=list)
    dropped: list[NotificationPlan] = field(default_factory=list)


class EvictionStrategy:
    """Replaces the least urgent scheduled reminders with more urgent plans."""

    def evict(
        self,
        incoming: list[NotificationPlan],
        snapshot: list[ScheduledNotification],
        max_replacements: int,
    ) -> EvictionResult:
        """Decide which scheduled reminders to replace.

        Only expiry reminders are candidates. Among equally least urgent
        entries, the first one in snapshot order is replaced.

        Args:
            incoming: Plans that did not fit under the ceiling
            snapshot: Entries the platform currently holds
            max_replacements: Upper bound on substitutions

        Returns:
            Pairs of entries to cancel and plans to schedule, plus the
            plans that lost
        """
        result = EvictionResult()
        candidates = [entry for entry in snapshot if entry.is_expiry_alert]
        ranked = sorted(incoming, key=lambda plan: plan.priority)

        for index, plan in enumerate(ranked):
            if len(result.schedule) >= max_replacements:
                result.dropped.extend(ranked[index:])
                break

            victim = self._least_urgent(candidates)
            if victim is None or plan.priority >= expiry_policy.priority(victim.offset_days):
                result.dropped.extend(ranked[index:])
                break

            candidates.remove(victim)
            result.cancel.append(victim)
            result.schedule.append(plan)
            logger.debug("Replacing %s with more urgent %s", victim.id, plan.id)

        return result

    @staticmethod
    def _least_urgent(candidates: list[ScheduledNotification]) -> ScheduledNotification | None:
        least: ScheduledNotification | None = None
        least_priority = -1
        for entry in candidates:
            rank = expiry_policy.priority(entry.offset_days)
            if rank > least_priority:
                least, least_priority = entry, rank
        return least
