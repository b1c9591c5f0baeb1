"""Durable record of reminders that already fired."""

import json
import logging
from collections.abc import Callable

from .data_store import KeyValueStore

logger = logging.getLogger(__name__)

DELIVERED_NOTIFICATIONS_KEY = "delivered_notifications"


class DeliveredMarkers:
    """A persisted set of delivered reminder ids.

    Stored as a JSON array under a single key. Markers are only removed
    when their item is deleted; there is no age-based pruning.
    """

    def __init__(self, store: KeyValueStore, key: str = DELIVERED_NOTIFICATIONS_KEY):
        self.store = store
        self.key = key

    def all(self) -> set[str]:
        """Load every marker."""
        raw = self.store.get_string(self.key)
        if not raw:
            return set()
        try:
            values = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable delivered markers under %r", self.key)
            return set()
        return {str(v) for v in values}

    def has(self, notification_id: str) -> bool:
        return notification_id in self.all()

    def add(self, notification_id: str) -> None:
        markers = self.all()
        if notification_id in markers:
            return
        markers.add(notification_id)
        self._save(markers)

    def remove_matching(self, predicate: Callable[[str], bool]) -> set[str]:
        """Drop every marker the predicate accepts.

        Returns:
            The removed markers
        """
        markers = self.all()
        removed = {m for m in markers if predicate(m)}
        if removed:
            self._save(markers - removed)
        return removed

    def _save(self, markers: set[str]) -> None:
        self.store.set_string(self.key, json.dumps(sorted(markers)))
