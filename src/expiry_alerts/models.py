"""Core data models for Expiry Alerts."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

EXPIRY_ALERT_KIND = "expiry-alert"


def to_local(moment: datetime) -> datetime:
    """Return a naive local datetime, converting aware values first."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


class InventoryItem(BaseModel):
    """A tracked item with an expiration instant."""

    id: str
    name: str
    expires_at: datetime

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Item id must not be empty")
        return value

    @field_validator("expires_at")
    @classmethod
    def _expires_local(cls, value: datetime) -> datetime:
        return to_local(value)


class NotificationPayload(BaseModel):
    """Data attached to every expiry reminder."""

    item_id: str
    item_name: str
    offset_days: int
    kind: str = EXPIRY_ALERT_KIND


class NotificationPlan(BaseModel):
    """A computed, not yet committed reminder."""

    id: str
    item_id: str
    item_name: str
    offset_days: int
    fire_at: datetime
    priority: int
    title_key: str
    body_key: str
    payload: NotificationPayload


class ScheduledNotification(BaseModel):
    """An entry held by the platform scheduler."""

    id: str
    title: str = ""
    body: str = ""
    fire_at: datetime | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_expiry_alert(self) -> bool:
        """Check if this entry belongs to the expiry reminder feature."""
        return self.payload.get("kind") == EXPIRY_ALERT_KIND

    @property
    def item_id(self) -> str | None:
        """Item the reminder refers to."""
        return self.payload.get("item_id")

    @property
    def offset_days(self) -> int | None:
        """Reminder offset, if the payload carries one."""
        value = self.payload.get("offset_days")
        return value if isinstance(value, int) else None


class CycleResult(BaseModel):
    """Outcome of one coordinator run."""

    scheduled: list[str] = Field(default_factory=list)
    cancelled: list[str] = Field(default_factory=list)
    evicted: list[str] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    aborted: bool = False
    reason: str | None = None

    def merge(self, other: "CycleResult") -> "CycleResult":
        """Fold another result into this one."""
        self.scheduled.extend(other.scheduled)
        self.cancelled.extend(other.cancelled)
        self.evicted.extend(other.evicted)
        self.dropped.extend(other.dropped)
        self.failed.extend(other.failed)
        if other.aborted:
            self.aborted = True
            self.reason = other.reason
        return self


class PriorityBreakdown(BaseModel):
    """Expiring item counts by urgency."""

    today: int = 0
    tomorrow: int = 0
    soon: int = 0


class NotificationStats(BaseModel):
    """Snapshot of scheduler usage against the ceiling."""

    current_count: int
    max_limit: int
    available_slots: int
    expiring_items: int
    priority_breakdown: PriorityBreakdown = Field(default_factory=PriorityBreakdown)
