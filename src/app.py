"""Application entry point for the ggwatch monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from contextlib import suppress
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.ggsel_client import GGSelClient
from adapters.ggsel_token import GGSelTokenProvider
from adapters.logging_notifier import LoggingNotifier
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from client import authorize, build_client
from core.monitor import ChatMonitor
from log_config import configure_logging

NAME = "GGWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging() -> None:
    load_dotenv()
    configure_logging(settings.LOGGING, settings.PROJECT_ROOT)


def _build_marketplace() -> tuple[GGSelClient, GGSelTokenProvider]:
    load_dotenv()
    seller_id = os.getenv("GGSEL_SELLER_ID", "")
    token_provider = GGSelTokenProvider(
        seller_id=seller_id,
        secret_key=os.getenv("GGSEL_SECRET_KEY", ""),
        base_url=settings.MARKETPLACE_BASE_URL,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    client = GGSelClient(
        seller_id=seller_id,
        base_url=settings.MARKETPLACE_BASE_URL,
        locale=settings.MARKETPLACE_LOCALE,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    return client, token_provider


def _build_bot_notifier() -> TelegramBotNotifier:
    load_dotenv()
    chat_id = settings.BOT_CHAT_ID or os.getenv("TELEGRAM_CHAT_ID")
    return TelegramBotNotifier(
        bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        chat_id=str(chat_id or ""),
        config=settings.notification_config(),
    )


async def _build_notifier():
    """Select the notification adapter from config; returns (notifier, telethon client or None)."""

    method = settings.NOTIFICATION_METHOD
    if method == "bot":
        notifier = _build_bot_notifier()
        if settings.SEND_TEST_MESSAGE and await notifier.test_connection():
            try:
                await notifier.send_test_message()
            except Exception as exc:
                LOGGER.error("Failed to send test message: %s", exc)
        return notifier, None
    if method == "saved_messages":
        telegram = build_client()
        await telegram.connect()
        await authorize(telegram)
        return TelegramSavedMessagesNotifier(telegram, settings.notification_config()), telegram
    if method == "log":
        return LoggingNotifier(), None
    raise RuntimeError("notification_method must be 'bot', 'saved_messages' or 'log'")


async def _log_stats_periodically(monitor: ChatMonitor, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        stats = monitor.stats()
        LOGGER.info(
            "Stats: chats=%s, tracked=%s, invoices cached=%s, last invoice=%s, events=%s",
            stats.total_chats,
            stats.tracked_chats,
            stats.cached_invoices,
            stats.last_invoice_id,
            stats.events_emitted,
        )


async def _run_monitor() -> None:
    client, token_provider = _build_marketplace()
    notifier, telegram = await _build_notifier()
    LOGGER.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    monitor = ChatMonitor(
        client=client,
        token_provider=token_provider,
        notifier=notifier,
        config=settings.monitor_config(),
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Signal handlers are unavailable on some platforms (Windows).
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, monitor.stop)

    stats_task = None
    if settings.STATS_INTERVAL_SECONDS > 0:
        stats_task = asyncio.create_task(
            _log_stats_periodically(monitor, settings.STATS_INTERVAL_SECONDS)
        )

    try:
        await monitor.run()
    finally:
        if stats_task is not None:
            stats_task.cancel()
            with suppress(asyncio.CancelledError):
                await stats_task
        if telegram is not None:
            await telegram.disconnect()

    stats = monitor.stats()
    LOGGER.info(
        "Final statistics: last invoice=%s, chats=%s, invoices cached=%s, "
        "products cached=%s, events=%s, failed deliveries=%s",
        stats.last_invoice_id,
        stats.total_chats,
        stats.cached_invoices,
        stats.cached_products,
        stats.events_emitted,
        stats.delivery_failures,
    )


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting ggwatch")
    try:
        asyncio.run(_run_monitor())
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")


def _test_notify() -> None:
    _print_banner()
    _configure_logging()

    async def _send() -> None:
        notifier = _build_bot_notifier()
        if not await notifier.test_connection():
            raise SystemExit(1)
        await notifier.send_test_message()
        print("Test message sent. Check your Telegram.")

    asyncio.run(_send())


def _login() -> None:
    _print_banner()
    _configure_logging()
    telegram = build_client()

    async def _run_login() -> None:
        await telegram.connect()
        await authorize(telegram)
        await telegram.disconnect()

    telegram.loop.run_until_complete(_run_login())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="ggwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the monitor")
    subparsers.add_parser("test-notify", help="Check the bot connection and send a test message")
    subparsers.add_parser("login", help="Authorize the Telegram session for Saved Messages delivery")

    args = parser.parse_args(argv)
    if args.command == "test-notify":
        _test_notify()
        return
    if args.command == "login":
        _login()
        return
    _run()


if __name__ == "__main__":
    main()
