"""Output formatting for CLI and programmatic use."""

import json
from datetime import date, datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for output."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, set):
            return sorted(obj)
        return super().default(obj)


def _when(value: Any) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%Y-%m-%d %H:%M")


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "cycle" in payload:
            self._render_cycle(data)
        elif "stats" in payload:
            self._render_stats(data)
        elif "scheduled" in payload:
            self._render_scheduled(data)
        elif "notifications" in payload:
            self._render_notifications(data)
        elif "delivered" in payload:
            self._render_delivered(data)
        elif "inventory_item" in payload:
            self._render_inventory_item(data)
        elif "inventory" in payload:
            self._render_inventory(data)
        elif "expiring" in payload:
            self._render_expiring(data)

    def _render_cycle(self, data: dict) -> None:
        """Render the outcome of a scheduling run."""
        cycle = data["data"]["cycle"]

        if cycle.get("aborted"):
            self.console.print(f"[yellow]Check aborted:[/yellow] {cycle.get('reason')}")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Outcome")
        table.add_column("Count", justify="right")
        table.add_column("Ids", style="dim")

        for label in ("scheduled", "cancelled", "evicted", "dropped", "failed"):
            ids = cycle.get(label, [])
            table.add_row(label.capitalize(), str(len(ids)), ", ".join(ids) or "-")

        self.console.print(table)

    def _render_stats(self, data: dict) -> None:
        """Render scheduler usage."""
        stats = data["data"]["stats"]
        breakdown = stats.get("priority_breakdown", {})

        lines = [
            f"Scheduled: {stats['current_count']}/{stats['max_limit']}",
            f"Available slots: {stats['available_slots']}",
            f"Expiring items: {stats['expiring_items']}",
            f"  today: [red]{breakdown.get('today', 0)}[/red]  "
            f"tomorrow: [yellow]{breakdown.get('tomorrow', 0)}[/yellow]  "
            f"soon: {breakdown.get('soon', 0)}",
        ]
        self.console.print(Panel("\n".join(lines), title="Notification Stats"))

    def _render_scheduled(self, data: dict) -> None:
        """Render pending reminders."""
        entries = data["data"]["scheduled"]

        if not entries:
            self.console.print("[dim]No reminders scheduled[/dim]")
            return

        table = Table(title="Scheduled Reminders", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("Item", style="cyan")
        table.add_column("Days", justify="right")
        table.add_column("Fires", style="green")
        table.add_column("Title")

        for entry in entries:
            payload = entry.get("payload", {})
            table.add_row(
                entry["id"],
                payload.get("item_name", "-"),
                str(payload.get("offset_days", "-")),
                _when(entry.get("fire_at")),
                entry.get("title", ""),
            )

        self.console.print(table)

    def _render_notifications(self, data: dict) -> None:
        """Render reminders delivered just now."""
        entries = data["data"]["notifications"]

        if not entries:
            self.console.print("[dim]Nothing due[/dim]")
            return

        for entry in entries:
            self.console.print(Panel(entry.get("body", ""), title=entry.get("title", "")))

    def _render_delivered(self, data: dict) -> None:
        """Render delivered markers."""
        ids = data["data"]["delivered"]

        if not ids:
            self.console.print("[dim]No reminders delivered yet[/dim]")
            return

        for notification_id in ids:
            self.console.print(f"  {notification_id}")

    def _render_inventory_item(self, data: dict) -> None:
        """Render a single inventory item."""
        item = data["data"]["inventory_item"]
        self.console.print(f"  {item['name']} ({item['id']}), expires {_when(item['expires_at'])}")

    def _render_inventory(self, data: dict) -> None:
        """Render inventory list."""
        items = data["data"]["inventory"]

        if not items:
            self.console.print("[dim]No items in inventory[/dim]")
            return

        table = Table(title="Tracked Items", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("Item", style="cyan")
        table.add_column("Expires", style="red")

        for item in items:
            table.add_row(item["id"], item["name"], _when(item["expires_at"]))

        self.console.print(table)

    def _render_expiring(self, data: dict) -> None:
        """Render expiring items."""
        items = data["data"]["expiring"]
        days = data["data"].get("days", 3)

        if not items:
            self.console.print(f"[dim]No items expiring within {days} days[/dim]")
            return

        self.console.print(f"\n[bold red]Items Expiring Within {days} Days[/bold red]")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Item")
        table.add_column("Expires", style="red")

        for item in items:
            table.add_row(item["name"], _when(item["expires_at"]))

        self.console.print(table)

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
