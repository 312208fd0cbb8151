"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone
from typing import Any, Optional

from adapters.notification_formatting import format_notification, format_test_message
from core.config import NotificationConfig
from core.events import MonitorEvent

LOGGER = logging.getLogger(__name__)


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, config: NotificationConfig) -> None:
        if not bot_token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN is required for bot notifications")
        if not chat_id:
            raise RuntimeError("A bot chat id is required for bot notifications")
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._config = config

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib.request.Request(
            self._endpoint(method), data=data, method="POST" if data is not None else "GET"
        )
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Bot API error {e.code}: {body}") from e

    async def send_text(self, text: str) -> None:
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": self._config.disable_web_page_preview,
        }
        await asyncio.to_thread(self._call, "sendMessage", payload)

    async def emit(self, event: MonitorEvent) -> None:
        """Send the formatted event; delivery failures are logged, not raised."""

        message = format_notification(event, self._config.timezone, mode="html")
        try:
            await self.send_text(message)
        except Exception as exc:
            LOGGER.error("Failed to send Telegram notification (%s): %s", event.kind, exc)
            return
        LOGGER.debug("Telegram notification sent (%s)", event.kind)

    async def test_connection(self) -> bool:
        try:
            body = await asyncio.to_thread(self._call, "getMe")
        except Exception as exc:
            LOGGER.error("Failed to connect to Telegram bot: %s", exc)
            return False
        bot = (body or {}).get("result") or {}
        LOGGER.info("Telegram bot connected: %s (@%s)", bot.get("first_name"), bot.get("username"))
        return True

    async def send_test_message(self) -> None:
        await self.send_text(format_test_message(datetime.now(timezone.utc), self._config.timezone))
