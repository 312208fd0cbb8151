"""Static configuration for ggwatch.

All user-editable, non-secret settings (polling, page sizes, notifications,
logging) live in a single JSON file for quick edits without touching Python.
Secrets stay in .env.
"""

import json
import os

from core.config import MonitorConfig, NotificationConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json; every key is optional."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Poll cadence and page sizes. The interval is measured from the end of one
# cycle to the start of the next.
_monitor = _CONFIG.get("monitor", {})
POLL_INTERVAL_SECONDS = float(_monitor.get("poll_interval_seconds", 15))
SALES_PAGE_SIZE = int(_monitor.get("sales_page_size", 20))
CHATS_PAGE_SIZE = int(_monitor.get("chats_page_size", 200))
MESSAGES_PAGE_SIZE = int(_monitor.get("messages_page_size", 200))
REQUEST_TIMEOUT_SECONDS = float(_monitor.get("request_timeout_seconds", 10))
# Periodic stats line in the log; 0 disables it.
STATS_INTERVAL_SECONDS = float(_monitor.get("stats_interval_seconds", 60))

_marketplace = _CONFIG.get("marketplace", {})
MARKETPLACE_BASE_URL = _marketplace.get("base_url", "https://seller.ggsel.net/api_sellers/api")
MARKETPLACE_LOCALE = _marketplace.get("locale", "en")

# Notification method switches adapters without changing core logic:
# "bot", "saved_messages" or "log".
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "bot")
# Falls back to TELEGRAM_CHAT_ID from .env when unset.
BOT_CHAT_ID = _notifications.get("bot_chat_id")
NOTIFICATION_TIMEZONE = _notifications.get("timezone", "Europe/Istanbul")
SEND_TEST_MESSAGE = bool(_notifications.get("send_test_message", True))
DISABLE_WEB_PAGE_PREVIEW = bool(_notifications.get("disable_web_page_preview", False))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def monitor_config() -> MonitorConfig:
    return MonitorConfig(
        poll_interval_seconds=POLL_INTERVAL_SECONDS,
        sales_page_size=SALES_PAGE_SIZE,
        chats_page_size=CHATS_PAGE_SIZE,
        messages_page_size=MESSAGES_PAGE_SIZE,
        request_timeout_seconds=REQUEST_TIMEOUT_SECONDS,
    )


def notification_config() -> NotificationConfig:
    return NotificationConfig(
        timezone=NOTIFICATION_TIMEZONE,
        disable_web_page_preview=DISABLE_WEB_PAGE_PREVIEW,
    )
