"""CLI entry point for Expiry Alerts."""

import asyncio
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from .config import ConfigManager
from .data_store import BackendType, DataStoreProtocol, create_data_store
from .inventory_manager import InventoryManager, ItemNotFoundError, TransientFetchError
from .lifecycle import ExpiryNotificationHooks, build_hooks
from .models import CycleResult, ScheduledNotification
from .output_formatter import OutputFormatter
from .platform_scheduler import LocalNotificationScheduler
from .triggers import PeriodicTask

app = typer.Typer(
    name="expiry-alerts",
    help="Local reminders for pantry items before they expire",
    no_args_is_help=True,
)

# Global state for formatter and services (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_store: DataStoreProtocol | None = None
hooks: ExpiryNotificationHooks | None = None


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_store() -> DataStoreProtocol:
    """Get or create data store instance using config values."""
    global data_store
    if data_store is None:
        cfg = get_config()
        data_store = create_data_store(
            backend=BackendType(cfg.data.backend), data_dir=cfg.data.storage_dir
        )
    return data_store


def get_hooks() -> ExpiryNotificationHooks:
    """Get or create the lifecycle hooks."""
    global hooks
    if hooks is None:
        hooks = build_hooks(get_config(), get_data_store())
    return hooks


def get_inventory_manager() -> InventoryManager:
    """Inventory manager over the active data store."""
    return InventoryManager(get_data_store())


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _cycle_output(result: CycleResult, message: str, **extra) -> dict:
    return {
        "success": not result.aborted,
        "message": message,
        "data": {"cycle": result.model_dump(), **extra},
    }


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    config_path: Annotated[
        Path | None, typer.Option("--config", help="Path to config.toml")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Expiry Alerts CLI - schedule reminders before pantry items expire."""
    global formatter, config, data_store, hooks

    formatter = OutputFormatter(json_mode=json_output)

    try:
        config = ConfigManager(config_path=config_path)
    except ValueError as e:
        formatter.error(str(e), error_code="INVALID_CONFIG")
        raise typer.Exit(code=1)

    configure_logging("DEBUG" if verbose else config.logging.level)

    # CLI --data-dir overrides config, which overrides default
    effective_data_dir = data_dir if data_dir else config.data.storage_dir
    backend = BackendType(config.data.backend)

    data_store = create_data_store(backend=backend, data_dir=effective_data_dir)
    hooks = build_hooks(config, data_store)


@app.command()
def check() -> None:
    """Run a full expiry check now."""
    result = asyncio.run(get_hooks().on_periodic_trigger())
    if result.aborted:
        formatter.error(f"Expiry check aborted: {result.reason}", error_code="CHECK_ABORTED")
        raise typer.Exit(code=1)

    output_data = _cycle_output(result, f"Scheduled {len(result.scheduled)} reminder(s)")
    formatter.output(output_data, output_data["message"])


@app.command()
def foreground() -> None:
    """Run the expiry check unless one ran recently."""
    result = asyncio.run(get_hooks().on_app_foreground())
    if result is None:
        output_data = {
            "success": True,
            "message": "Checked recently, skipping",
            "data": {"throttled": True},
        }
        formatter.output(output_data, output_data["message"])
        return
    if result.aborted:
        formatter.error(f"Expiry check aborted: {result.reason}", error_code="CHECK_ABORTED")
        raise typer.Exit(code=1)

    output_data = _cycle_output(result, f"Scheduled {len(result.scheduled)} reminder(s)")
    formatter.output(output_data, output_data["message"])


async def _deliver_due(
    active_hooks: ExpiryNotificationHooks, now: datetime
) -> list[ScheduledNotification]:
    scheduler = active_hooks.coordinator.scheduler
    if not isinstance(scheduler, LocalNotificationScheduler):
        return []
    due = await scheduler.pop_due(now)
    for entry in due:
        await active_hooks.on_notification_delivered(entry.id)
    return due


@app.command()
def deliver() -> None:
    """Show reminders that are due and mark them delivered."""
    try:
        due = asyncio.run(_deliver_due(get_hooks(), datetime.now()))
        output_data = {
            "success": True,
            "data": {"notifications": [e.model_dump() for e in due], "count": len(due)},
        }
        formatter.output(output_data, f"{len(due)} reminder(s) delivered")
    except TransientFetchError as e:
        formatter.error(str(e), error_code="FETCH_FAILED")
        raise typer.Exit(code=1)


@app.command()
def stats(
    days: Annotated[int, typer.Option("--days", "-d", help="Expiry window in days")] = 3,
) -> None:
    """Show scheduler usage against the ceiling."""
    try:
        result = asyncio.run(get_hooks().coordinator.get_stats(window=days))
        formatter.output({"success": True, "data": {"stats": result.model_dump()}})
    except TransientFetchError as e:
        formatter.error(str(e), error_code="FETCH_FAILED")
        raise typer.Exit(code=1)


@app.command()
def watch(
    interval: Annotated[
        float | None, typer.Option("--interval-hours", help="Hours between checks")
    ] = None,
    iterations: Annotated[
        int | None, typer.Option("--iterations", help="Stop after this many checks")
    ] = None,
) -> None:
    """Run checks periodically and deliver due reminders."""
    active_hooks = get_hooks()
    hours = interval if interval is not None else get_config().triggers.periodic_interval_hours

    async def tick() -> None:
        await active_hooks.on_periodic_trigger()
        for entry in await _deliver_due(active_hooks, datetime.now()):
            formatter.output(
                {"success": True, "data": {"notifications": [entry.model_dump()]}}
            )

    task = PeriodicTask(tick, timedelta(hours=hours))
    try:
        asyncio.run(task.run(iterations=iterations))
    except KeyboardInterrupt:
        formatter.warning("Stopped")


# --- Item subcommand group ---
item_app = typer.Typer(help="Tracked item commands")
app.add_typer(item_app, name="item")


def _parse_expiry(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid expiry {value!r}, use YYYY-MM-DD or YYYY-MM-DDTHH:MM")


@item_app.command("add")
def item_add(
    name: Annotated[str, typer.Argument(help="Item name")],
    expires: Annotated[
        str, typer.Option("--expires", "-e", help="Expiration (YYYY-MM-DD[THH:MM])")
    ],
    item_id: Annotated[str | None, typer.Option("--id", help="Explicit item id")] = None,
) -> None:
    """Track an item and schedule its reminders."""
    try:
        item = get_inventory_manager().add_item(
            name=name, expires_at=_parse_expiry(expires), item_id=item_id
        )
        result = asyncio.run(get_hooks().on_item_added(item))
        output_data = _cycle_output(
            result, f"Added {item.name}", inventory_item=item.model_dump()
        )
        formatter.output(output_data, output_data["message"])
    except ValidationError as e:
        formatter.error(str(e), error_code="INVALID_ITEM")
        raise typer.Exit(code=1)
    except ValueError as e:
        formatter.error(str(e), error_code="DUPLICATE_ITEM")
        raise typer.Exit(code=1)


@item_app.command("update")
def item_update(
    item_id: Annotated[str, typer.Argument(help="Item id")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    expires: Annotated[
        str | None, typer.Option("--expires", "-e", help="New expiration")
    ] = None,
) -> None:
    """Edit an item and reschedule its reminders."""
    try:
        item = get_inventory_manager().update_item(
            item_id,
            name=name,
            expires_at=_parse_expiry(expires) if expires else None,
        )
        result = asyncio.run(get_hooks().on_item_updated(item))
        output_data = _cycle_output(
            result, f"Updated {item.name}", inventory_item=item.model_dump()
        )
        formatter.output(output_data, output_data["message"])
    except ItemNotFoundError as e:
        formatter.error(str(e), error_code="ITEM_NOT_FOUND")
        raise typer.Exit(code=1)


@item_app.command("remove")
def item_remove(
    item_id: Annotated[str, typer.Argument(help="Item id")],
) -> None:
    """Stop tracking an item and drop its reminders."""
    try:
        removed = get_inventory_manager().remove_item(item_id)
        result = asyncio.run(get_hooks().on_item_deleted(item_id))
        output_data = _cycle_output(
            result, f"Removed {removed.name}", inventory_item=removed.model_dump()
        )
        formatter.output(output_data, output_data["message"])
    except ItemNotFoundError as e:
        formatter.error(str(e), error_code="ITEM_NOT_FOUND")
        raise typer.Exit(code=1)


@item_app.command("list")
def item_list() -> None:
    """List tracked items."""
    items = get_inventory_manager().get_inventory()
    output_data = {
        "success": True,
        "data": {"inventory": [i.model_dump() for i in items], "count": len(items)},
    }
    formatter.output(output_data, f"{len(items)} tracked items")


@item_app.command("expiring")
def item_expiring(
    days: Annotated[int, typer.Option("--days", "-d", help="Days to look ahead")] = 3,
) -> None:
    """List items expiring soon."""
    items = get_inventory_manager().get_expiring_soon(days=days)
    output_data = {
        "success": True,
        "data": {
            "expiring": [i.model_dump() for i in items],
            "count": len(items),
            "days": days,
        },
    }
    formatter.output(output_data, f"{len(items)} items expiring within {days} days")


# --- Scheduled subcommand group ---
scheduled_app = typer.Typer(help="Pending reminder commands")
app.add_typer(scheduled_app, name="scheduled")


@scheduled_app.command("list")
def scheduled_list() -> None:
    """List pending reminders."""
    try:
        entries = asyncio.run(get_hooks().coordinator.get_scheduled_summary())
        output_data = {
            "success": True,
            "data": {"scheduled": [e.model_dump() for e in entries], "count": len(entries)},
        }
        formatter.output(output_data, f"{len(entries)} reminders scheduled")
    except TransientFetchError as e:
        formatter.error(str(e), error_code="FETCH_FAILED")
        raise typer.Exit(code=1)


# --- Delivered subcommand group ---
delivered_app = typer.Typer(help="Delivered reminder commands")
app.add_typer(delivered_app, name="delivered")


@delivered_app.command("list")
def delivered_list() -> None:
    """List reminders already delivered."""
    ids = get_hooks().coordinator.delivered_ids()
    formatter.output({"success": True, "data": {"delivered": ids, "count": len(ids)}})


@delivered_app.command("mark")
def delivered_mark(
    notification_id: Annotated[str, typer.Argument(help="Reminder id, e.g. expiry-<item>-1")],
) -> None:
    """Record a reminder as delivered."""
    asyncio.run(get_hooks().on_notification_delivered(notification_id))
    output_data = {
        "success": True,
        "message": f"Marked {notification_id} as delivered",
        "data": {"delivered": get_hooks().coordinator.delivered_ids()},
    }
    formatter.output(output_data, output_data["message"])


if __name__ == "__main__":
    app()
