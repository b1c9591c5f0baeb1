"""Platform notification scheduler contract and a local implementation.

The device's notification subsystem is an external collaborator. The core
only relies on `PlatformScheduler`; `LocalNotificationScheduler` keeps the
pending list in the data store so the CLI can run the whole flow and
"deliver" reminders once they come due.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Protocol

from pydantic import ValidationError

from .data_store import DataStoreProtocol
from .inventory_manager import TransientFetchError
from .models import ScheduledNotification

logger = logging.getLogger(__name__)

# iOS keeps at most 64 pending local notifications per app.
PLATFORM_LIMIT = 64


class SchedulingFailure(Exception):
    """Raised when the platform rejects a single schedule or cancel call."""


class PlatformScheduler(Protocol):
    """Device notification subsystem."""

    async def list_scheduled(self) -> list[ScheduledNotification]: ...

    async def schedule(
        self,
        notification_id: str,
        title: str,
        body: str,
        fire_at: datetime,
        payload: dict[str, Any],
    ) -> None: ...

    async def cancel(self, notification_id: str) -> None: ...


class LocalNotificationScheduler:
    """Pending notifications persisted in the data store."""

    def __init__(self, data_store: DataStoreProtocol, limit: int = PLATFORM_LIMIT):
        self.data_store = data_store
        self.limit = limit

    async def list_scheduled(self) -> list[ScheduledNotification]:
        """List pending notifications.

        Raises:
            TransientFetchError: If the pending list cannot be read
        """
        try:
            return self.data_store.load_scheduled()
        except (OSError, json.JSONDecodeError, sqlite3.Error, ValidationError) as e:
            raise TransientFetchError(f"Could not read scheduled notifications: {e}") from e

    async def schedule(
        self,
        notification_id: str,
        title: str,
        body: str,
        fire_at: datetime,
        payload: dict[str, Any],
    ) -> None:
        """Schedule a notification, replacing a pending one with the same id.

        Raises:
            SchedulingFailure: If the platform limit is reached or storage fails
        """
        try:
            pending = [e for e in self.data_store.load_scheduled() if e.id != notification_id]
            if len(pending) >= self.limit:
                raise SchedulingFailure(
                    f"Platform limit of {self.limit} pending notifications reached"
                )
            pending.append(
                ScheduledNotification(
                    id=notification_id,
                    title=title,
                    body=body,
                    fire_at=fire_at,
                    payload=payload,
                )
            )
            self.data_store.save_scheduled(pending)
        except (OSError, sqlite3.Error, ValueError) as e:
            raise SchedulingFailure(f"Could not schedule {notification_id}: {e}") from e

    async def cancel(self, notification_id: str) -> None:
        """Cancel a pending notification; unknown ids are ignored.

        Raises:
            SchedulingFailure: If storage fails
        """
        try:
            pending = self.data_store.load_scheduled()
            remaining = [e for e in pending if e.id != notification_id]
            if len(remaining) != len(pending):
                self.data_store.save_scheduled(remaining)
        except (OSError, sqlite3.Error, ValueError) as e:
            raise SchedulingFailure(f"Could not cancel {notification_id}: {e}") from e

    async def pop_due(self, now: datetime) -> list[ScheduledNotification]:
        """Remove and return every notification whose fire time has come."""
        pending = await self.list_scheduled()
        due = [e for e in pending if e.fire_at is not None and e.fire_at <= now]
        if due:
            self.data_store.save_scheduled([e for e in pending if e not in due])
            logger.info("Delivering %d due notification(s)", len(due))
        return sorted(due, key=lambda e: e.fire_at)  # type: ignore[arg-type, return-value]
