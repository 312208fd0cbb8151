"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MonitorConfig:
    """Polling cadence and page sizes for the monitor."""

    poll_interval_seconds: float = 15.0
    sales_page_size: int = 20
    chats_page_size: int = 200
    messages_page_size: int = 200
    request_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotificationConfig:
    """Notification formatting settings consumed by notifier adapters."""

    timezone: str = "Europe/Istanbul"
    disable_web_page_preview: bool = False
