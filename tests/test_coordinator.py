"""Tests for the scheduling coordinator."""

from datetime import datetime, timedelta

import pytest
from conftest import NOW, make_item, scheduled_entry

from expiry_alerts.coordinator import SchedulingCoordinator
from expiry_alerts.localization import CatalogLocalizer
from expiry_alerts.models import ScheduledNotification

# Fire time an offset-3 reminder holds for an item 5 days out.
IN_TWO_DAYS_AT_NINE = datetime(2026, 3, 12, 9, 0)


def full_of_soon_reminders(count: int = 60) -> tuple[list, list[ScheduledNotification]]:
    """Items 5 days out with their offset-3 reminders already pending."""
    items = [make_item(f"f{i}", 5) for i in range(count)]
    entries = [scheduled_entry(f"f{i}", 3, fire_at=IN_TWO_DAYS_AT_NINE) for i in range(count)]
    return items, entries


class TestFullCycle:
    """Tests for run_full_cycle."""

    @pytest.mark.asyncio
    async def test_schedules_next_reminder(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("milk", 5, name="Milk")]

        result = await coordinator.run_full_cycle(NOW)

        assert result.scheduled == ["expiry-milk-3"]
        entry = scheduler.entries[0]
        assert entry.fire_at == IN_TWO_DAYS_AT_NINE
        assert entry.title == "Expiring Soon"
        assert entry.body == "Milk expires in 3 days"
        assert entry.payload["kind"] == "expiry-alert"

    @pytest.mark.asyncio
    async def test_expires_today_fires_immediately(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("milk", 0, name="Milk")]

        result = await coordinator.run_full_cycle(NOW)

        assert result.scheduled == ["expiry-milk-0"]
        assert scheduler.entries[0].fire_at == NOW + timedelta(seconds=5)
        assert scheduler.entries[0].title == "Expiring Today!"

    @pytest.mark.asyncio
    async def test_idempotent(self, coordinator, inventory, scheduler):
        """A second run over unchanged state does nothing."""
        inventory.items = [make_item("a", 5), make_item("b", 1), make_item("c", 0)]

        await coordinator.run_full_cycle(NOW)
        before = sorted(scheduler.ids)
        scheduler.schedule_calls.clear()

        second = await coordinator.run_full_cycle(NOW)

        assert second.scheduled == []
        assert second.cancelled == []
        assert scheduler.schedule_calls == []
        assert sorted(scheduler.ids) == before

    @pytest.mark.asyncio
    async def test_idempotent_just_before_midnight(self, coordinator, inventory, scheduler):
        """An immediate reminder landing after midnight is not treated as moved."""
        late = datetime(2026, 3, 10, 23, 59, 58)
        inventory.items = [
            make_item("milk", 0).model_copy(update={"expires_at": datetime(2026, 3, 10, 23, 59, 59)})
        ]

        first = await coordinator.run_full_cycle(late)
        assert first.scheduled == ["expiry-milk-0"]
        assert scheduler.entries[0].fire_at == datetime(2026, 3, 11, 0, 0, 3)

        second = await coordinator.run_full_cycle(late)

        assert second.scheduled == []
        assert second.cancelled == []

    @pytest.mark.asyncio
    async def test_entering_window_schedules_day_of(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("milk", 3)]

        result = await coordinator.run_full_cycle(NOW)

        assert sorted(result.scheduled) == ["expiry-milk-0", "expiry-milk-1", "expiry-milk-3"]

    @pytest.mark.asyncio
    async def test_no_duplicate_ids(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("a", 1), make_item("a", 1)]

        await coordinator.run_full_cycle(NOW)

        assert len(scheduler.ids) == len(set(scheduler.ids))

    @pytest.mark.asyncio
    async def test_delivered_not_rescheduled(self, coordinator, inventory, scheduler, delivered):
        """A reminder that fired is never sent again."""
        inventory.items = [make_item("milk", 1)]
        delivered.add("expiry-milk-1")

        result = await coordinator.run_full_cycle(NOW)

        assert result.scheduled == ["expiry-milk-0"]
        assert "expiry-milk-1" not in scheduler.ids

    @pytest.mark.asyncio
    async def test_expired_items_get_nothing(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("old", -2)]

        result = await coordinator.run_full_cycle(NOW)

        assert result.scheduled == []
        assert scheduler.entries == []

    @pytest.mark.asyncio
    async def test_cancels_reminders_of_removed_items(self, coordinator, inventory, scheduler):
        scheduler.entries = [scheduled_entry("gone", 1)]

        result = await coordinator.run_full_cycle(NOW)

        assert result.cancelled == ["expiry-gone-1"]
        assert scheduler.entries == []

    @pytest.mark.asyncio
    async def test_reschedules_after_expiry_moved(self, coordinator, inventory, scheduler):
        """A pending reminder for the old expiry day is replaced."""
        inventory.items = [make_item("milk", 5)]
        scheduler.entries = [scheduled_entry("milk", 3, fire_at=NOW + timedelta(days=1))]

        result = await coordinator.run_full_cycle(NOW)

        assert result.cancelled == ["expiry-milk-3"]
        assert result.scheduled == ["expiry-milk-3"]
        assert scheduler.entries[0].fire_at == IN_TWO_DAYS_AT_NINE

    @pytest.mark.asyncio
    async def test_leaves_foreign_notifications(self, coordinator, scheduler):
        promo = ScheduledNotification(id="promo", payload={"kind": "promo"})
        scheduler.entries = [promo]

        result = await coordinator.run_full_cycle(NOW)

        assert result.cancelled == []
        assert scheduler.ids == ["promo"]

    @pytest.mark.asyncio
    async def test_inventory_failure_aborts_without_side_effects(
        self, coordinator, inventory, scheduler
    ):
        inventory.items = [make_item("milk", 0)]
        scheduler.entries = [scheduled_entry("gone", 1)]
        inventory.fail = True

        result = await coordinator.run_full_cycle(NOW)

        assert result.aborted
        assert "backend unreachable" in result.reason
        assert scheduler.schedule_calls == []
        assert scheduler.cancel_calls == []

    @pytest.mark.asyncio
    async def test_scheduler_listing_failure_aborts(self, coordinator, inventory, scheduler):
        inventory.items = [make_item("milk", 0)]
        scheduler.fail_list = True

        result = await coordinator.run_full_cycle(NOW)

        assert result.aborted
        assert scheduler.schedule_calls == []

    @pytest.mark.asyncio
    async def test_unreadable_markers_abort(self, coordinator, inventory, scheduler, memory_store):
        inventory.items = [make_item("milk", 0)]
        memory_store.fail = True

        result = await coordinator.run_full_cycle(NOW)

        assert result.aborted
        assert scheduler.schedule_calls == []

    @pytest.mark.asyncio
    async def test_schedule_failure_skips_plan(self, coordinator, inventory, scheduler):
        """One rejected reminder does not stop the others."""
        inventory.items = [make_item("a", 0), make_item("b", 0)]
        scheduler.fail_ids = {"expiry-a-0"}

        result = await coordinator.run_full_cycle(NOW)

        assert result.failed == ["expiry-a-0"]
        assert result.scheduled == ["expiry-b-0"]
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_ceiling_respected(self, inventory, scheduler, delivered):
        """More plans than the ceiling allows: the most urgent win."""
        coordinator = SchedulingCoordinator(
            inventory=inventory,
            scheduler=scheduler,
            delivered=delivered,
            localizer=CatalogLocalizer("en"),
            ceiling=5,
        )
        inventory.items = [make_item(f"i{n}", 1) for n in range(4)]

        result = await coordinator.run_full_cycle(NOW)

        assert len(scheduler.entries) == 5
        assert {f"expiry-i{n}-0" for n in range(4)} <= set(scheduler.ids)
        assert len(result.dropped) == 3

    @pytest.mark.asyncio
    async def test_urgent_item_evicts_at_ceiling(self, coordinator, inventory, scheduler):
        items, entries = full_of_soon_reminders()
        inventory.items = items + [make_item("urgent", 0)]
        scheduler.entries = entries

        result = await coordinator.run_full_cycle(NOW)

        assert result.evicted == ["expiry-f0-3"]
        assert result.scheduled == ["expiry-urgent-0"]
        assert len(scheduler.entries) == 60


class TestCommit:
    """Tests for committing plans under the ceiling."""

    @pytest.mark.asyncio
    async def test_fetches_snapshot_when_omitted(self, coordinator, scheduler):
        plans = coordinator.planner.build_plans([make_item("milk", 0)], NOW)

        result = await coordinator.commit(plans)

        assert result.scheduled == ["expiry-milk-0"]

    @pytest.mark.asyncio
    async def test_empty_plans(self, coordinator, scheduler):
        scheduler.fail_list = True
        result = await coordinator.commit([])
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_failed_eviction_cancel_drops_plan(self, coordinator, scheduler):
        """The ceiling holds when a victim cannot be cancelled."""
        _, entries = full_of_soon_reminders()
        scheduler.entries = entries
        scheduler.fail_ids = {"expiry-f0-3"}
        plans = coordinator.planner.build_plans([make_item("urgent", 0)], NOW)

        result = await coordinator.commit(plans, list(entries))

        assert result.failed == ["expiry-f0-3"]
        assert result.dropped == ["expiry-urgent-0"]
        assert len(scheduler.entries) == 60

    @pytest.mark.asyncio
    async def test_free_slots_filled_before_eviction(self, coordinator, scheduler):
        _, entries = full_of_soon_reminders(58)
        scheduler.entries = entries
        plans = coordinator.planner.build_plans(
            [make_item("x", 0), make_item("y", 0), make_item("z", 0)], NOW
        )

        result = await coordinator.commit(plans, list(entries))

        assert len(result.scheduled) == 3
        assert result.evicted == ["expiry-f0-3"]
        assert len(scheduler.entries) == 60


class TestItemHooks:
    """Tests for per-item runs."""

    @pytest.mark.asyncio
    async def test_run_for_item_at_ceiling(self, coordinator, scheduler):
        """Adding an urgent item to a full scheduler replaces one reminder."""
        _, entries = full_of_soon_reminders()
        scheduler.entries = entries

        result = await coordinator.run_for_item(make_item("urgent", 0), NOW)

        assert result.evicted == ["expiry-f0-3"]
        assert "expiry-urgent-0" in scheduler.ids
        assert len(scheduler.entries) == 60

    @pytest.mark.asyncio
    async def test_replace_cancels_pending_keeps_delivered(
        self, coordinator, scheduler, delivered
    ):
        scheduler.entries = [scheduled_entry("milk", 3, fire_at=NOW + timedelta(days=1))]
        delivered.add("expiry-milk-1")

        result = await coordinator.run_for_item(make_item("milk", 5), NOW, replace=True)

        assert result.cancelled == ["expiry-milk-3"]
        assert result.scheduled == ["expiry-milk-3"]
        assert delivered.has("expiry-milk-1")

    @pytest.mark.asyncio
    async def test_run_for_item_listing_failure(self, coordinator, scheduler):
        scheduler.fail_list = True
        result = await coordinator.run_for_item(make_item("milk", 0), NOW)
        assert result.aborted

    @pytest.mark.asyncio
    async def test_cancel_for_item(self, coordinator, scheduler, delivered):
        """Deleting an item clears its pending and delivered reminders."""
        scheduler.entries = [
            scheduled_entry("milk", 1),
            scheduled_entry("milk", 0),
            scheduled_entry("bread", 0),
        ]
        delivered.add("expiry-milk-3")
        delivered.add("expiry-bread-3")

        result = await coordinator.cancel_for_item("milk")

        assert sorted(result.cancelled) == ["expiry-milk-0", "expiry-milk-1"]
        assert scheduler.ids == ["expiry-bread-0"]
        assert delivered.all() == {"expiry-bread-3"}

    @pytest.mark.asyncio
    async def test_readded_item_is_fresh(self, coordinator, scheduler, delivered):
        """A re-added item under a new id is not suppressed by old markers."""
        await coordinator.run_for_item(make_item("milk", 1), NOW)
        delivered.add("expiry-milk-1")
        delivered.add("expiry-milk-2-3")
        await coordinator.cancel_for_item("milk")

        result = await coordinator.run_for_item(make_item("milk-2", 1, name="Milk"), NOW)

        assert delivered.all() == {"expiry-milk-2-3"}
        assert sorted(result.scheduled) == ["expiry-milk-2-0", "expiry-milk-2-1"]
        assert sorted(scheduler.ids) == ["expiry-milk-2-0", "expiry-milk-2-1"]

    @pytest.mark.asyncio
    async def test_cancel_for_item_without_listing(self, coordinator, scheduler):
        """Falls back to cancelling every deterministic id."""
        scheduler.fail_list = True

        await coordinator.cancel_for_item("milk")

        assert scheduler.cancel_calls == ["expiry-milk-3", "expiry-milk-1", "expiry-milk-0"]


class TestReporting:
    """Tests for delivery marking and stats."""

    def test_mark_delivered(self, coordinator):
        coordinator.mark_delivered("expiry-milk-0")
        coordinator.mark_delivered("expiry-bread-1")
        assert coordinator.delivered_ids() == ["expiry-bread-1", "expiry-milk-0"]

    @pytest.mark.asyncio
    async def test_scheduled_summary(self, coordinator, scheduler):
        later = scheduled_entry("b", 3, fire_at=NOW + timedelta(days=2))
        sooner = scheduled_entry("a", 0, fire_at=NOW + timedelta(hours=1))
        scheduler.entries = [later, ScheduledNotification(id="promo"), sooner]

        summary = await coordinator.get_scheduled_summary()

        assert [e.id for e in summary] == ["expiry-a-0", "expiry-b-3"]

    @pytest.mark.asyncio
    async def test_stats(self, coordinator, inventory, scheduler):
        inventory.items = [
            make_item("a", 0),
            make_item("b", 1),
            make_item("c", 2),
            make_item("d", 3),
            make_item("e", 9),
        ]
        scheduler.entries = [scheduled_entry("a", 0), scheduled_entry("b", 1)]

        stats = await coordinator.get_stats(NOW)

        assert stats.current_count == 2
        assert stats.max_limit == 60
        assert stats.available_slots == 58
        assert stats.expiring_items == 4
        assert stats.priority_breakdown.today == 1
        assert stats.priority_breakdown.tomorrow == 1
        assert stats.priority_breakdown.soon == 2
        breakdown = stats.priority_breakdown
        assert breakdown.today + breakdown.tomorrow + breakdown.soon == stats.expiring_items

    @pytest.mark.asyncio
    async def test_stats_with_foreign_entries(self, coordinator, scheduler):
        """Foreign notifications count against the ceiling too."""
        scheduler.entries = [ScheduledNotification(id=f"other-{n}") for n in range(3)]
        stats = await coordinator.get_stats(NOW)
        assert stats.available_slots == 57

