"""Localized notification text."""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"

CATALOGS: dict[str, dict[str, str]] = {
    "en": {
        "notification_expires_today_title": "Expiring Today!",
        "notification_expires_today_body": "{item_name} expires today. Use it now!",
        "notification_expires_tomorrow_title": "Expires Tomorrow",
        "notification_expires_tomorrow_body": "{item_name} expires tomorrow",
        "notification_expires_soon_title": "Expiring Soon",
        "notification_expires_soon_body": "{item_name} expires in {days} days",
    },
    "de": {
        "notification_expires_today_title": "Läuft heute ab!",
        "notification_expires_today_body": "{item_name} läuft heute ab. Jetzt verbrauchen!",
        "notification_expires_tomorrow_title": "Läuft morgen ab",
        "notification_expires_tomorrow_body": "{item_name} läuft morgen ab",
        "notification_expires_soon_title": "Läuft bald ab",
        "notification_expires_soon_body": "{item_name} läuft in {days} Tagen ab",
    },
}


def message_keys(offset_days: int) -> tuple[str, str]:
    """Title and body keys for a reminder offset."""
    if offset_days == 0:
        stem = "notification_expires_today"
    elif offset_days == 1:
        stem = "notification_expires_tomorrow"
    else:
        stem = "notification_expires_soon"
    return f"{stem}_title", f"{stem}_body"


class Localizer(Protocol):
    """Localized string provider."""

    def text(self, key: str, params: dict[str, Any] | None = None) -> str: ...


class CatalogLocalizer:
    """Looks messages up in the built-in catalogs."""

    def __init__(self, locale: str = DEFAULT_LOCALE):
        if locale not in CATALOGS:
            logger.warning("Unknown locale %r, falling back to %s", locale, DEFAULT_LOCALE)
            locale = DEFAULT_LOCALE
        self.locale = locale

    def text(self, key: str, params: dict[str, Any] | None = None) -> str:
        """Render a message, returning the key itself when it is unknown."""
        template = CATALOGS[self.locale].get(key) or CATALOGS[DEFAULT_LOCALE].get(key)
        if template is None:
            return key
        try:
            return template.format(**(params or {}))
        except KeyError as e:
            logger.warning("Missing parameter %s for message %s", e, key)
            return template
