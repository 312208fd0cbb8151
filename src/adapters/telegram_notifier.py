"""Telegram notification adapter for Saved Messages.

Formats a human-readable Markdown message and sends it to Saved Messages
through the user's own Telethon session.
"""

from __future__ import annotations

import logging

from adapters.notification_formatting import format_notification
from core.config import NotificationConfig
from core.events import MonitorEvent

LOGGER = logging.getLogger(__name__)


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends messages to the user's Saved Messages."""

    def __init__(self, client, config: NotificationConfig) -> None:
        self._client = client
        self._config = config

    async def emit(self, event: MonitorEvent) -> None:
        """Send the formatted event to Saved Messages."""

        message = format_notification(event, self._config.timezone, mode="markdown")
        try:
            await self._client.send_message(
                "me",
                message,
                parse_mode="Markdown",
                link_preview=not self._config.disable_web_page_preview,
            )
        except Exception as exc:
            LOGGER.error("Failed to send Saved Messages notification (%s): %s", event.kind, exc)
