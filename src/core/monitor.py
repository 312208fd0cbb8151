"""Poll cycle orchestration.

This module is integration-agnostic. It drives the differ through one full
poll at a time and only talks to the outside world through the ports:

1) Acquire a token
2) Sales diff, enrich, emit NewOrder per sale
3) Chat-count diff, emit NewChat (+ initial NewMessages) per new chat
4) Per-chat message diff, enrich, emit one NewMessages per chat
5) Wait the poll interval, measured from the end of the cycle

Every step, and every item inside a step, fails independently: an error is
logged and the rest of the cycle continues.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import replace
from typing import Awaitable, Optional, Sequence, TypeVar

from core.config import MonitorConfig
from core.differ import SnapshotDiffer
from core.emitter import EventEmitter
from core.enrichment import EnrichmentCache, fallback_product_name
from core.events import NewChat, NewMessages, NewOrder
from core.models import Chat, InvoiceDetail, Message, MonitorStats, Sale
from core.ports import MarketplaceClient, NotifierPort, TokenProvider
from core.watermarks import WatermarkStore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class MonitorState(str, enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


class ChatMonitor:
    """Detects new orders, chats and messages for one seller account.

    Each instance owns its watermarks and enrichment cache, so several
    monitors can run side by side without sharing state.
    """

    def __init__(
        self,
        client: MarketplaceClient,
        token_provider: TokenProvider,
        notifier: NotifierPort,
        config: Optional[MonitorConfig] = None,
        watermarks: Optional[WatermarkStore] = None,
        cache: Optional[EnrichmentCache] = None,
    ) -> None:
        self._client = client
        self._tokens = token_provider
        self._emitter = EventEmitter(notifier)
        self._config = config or MonitorConfig()
        self.watermarks = watermarks or WatermarkStore()
        self.cache = cache or EnrichmentCache()
        self._differ = SnapshotDiffer(self.watermarks)

        self._state = MonitorState.STOPPED
        self._first_poll_complete = False
        self._stop_requested = False
        self._cycle_active = False
        self._loop_active = False
        self._cycles_completed = 0
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def first_poll_complete(self) -> bool:
        return self._first_poll_complete

    def stats(self) -> MonitorStats:
        return MonitorStats(
            state=self._state.value,
            total_chats=self.watermarks.last_chat_count,
            tracked_chats=self.watermarks.tracked_chats,
            cached_products=self.cache.product_count,
            cached_invoices=self.cache.invoice_count,
            last_invoice_id=self.watermarks.last_invoice_id,
            poll_interval_seconds=self._config.poll_interval_seconds,
            cycles_completed=self._cycles_completed,
            delivery_failures=self._emitter.failures,
            events_emitted=self._emitter.counts,
        )

    # Lifecycle

    async def start(self) -> None:
        """Capture the baseline without emitting anything, then enter RUNNING."""

        if self._state is not MonitorState.STOPPED:
            LOGGER.warning("Monitor is already running")
            return

        self._state = MonitorState.STARTING
        self._stop_requested = False
        self._first_poll_complete = False
        LOGGER.info("Starting monitor (poll interval %ss)", self._config.poll_interval_seconds)

        try:
            token = await self._tokens.get_token()
        except Exception:
            LOGGER.exception("Baseline capture skipped: could not obtain a token")
        else:
            await self._capture_baseline(token)

        self._state = MonitorState.RUNNING
        LOGGER.info(
            "Monitoring from invoice %s with %s existing chats and %s cached product names",
            self.watermarks.last_invoice_id,
            self.watermarks.last_chat_count,
            self.cache.product_count,
        )

    def stop(self) -> None:
        """Request a stop; an in-flight cycle is allowed to finish."""

        if self._state is MonitorState.STOPPED:
            LOGGER.warning("Monitor is not running")
            return

        LOGGER.info("Stopping monitor...")
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()
        if not self._loop_active and not self._cycle_active:
            self._state = MonitorState.STOPPED

    async def run(self) -> None:
        """Start, then run cycles one at a time until stop() is called.

        The first cycle runs right after the baseline; later cycles follow
        the poll interval measured from the end of the previous one.
        """

        if self._loop_active:
            LOGGER.warning("Monitor loop is already running")
            return

        self._loop_active = True
        self._wakeup = asyncio.Event()
        try:
            await self.start()
            while not self._stop_requested:
                await self.run_cycle()
                if self._stop_requested:
                    break
                await self._wait_for_next_cycle()
        finally:
            self._loop_active = False
            self._wakeup = None
            self._state = MonitorState.STOPPED
            LOGGER.info("Monitor stopped after %s cycle(s)", self._cycles_completed)

    async def run_cycle(self) -> None:
        """Run exactly one poll cycle.

        The first cycle after start() is a warm-up: it refreshes message
        watermarks but emits no NewOrder, so an order that lands before that
        cycle is reported by the following one.
        """

        if self._cycle_active:
            raise RuntimeError("A poll cycle is already in progress")

        self._cycle_active = True
        try:
            await self._poll()
        finally:
            self._cycle_active = False
            self._cycles_completed += 1
            if not self._first_poll_complete:
                self._first_poll_complete = True
                LOGGER.info("First poll complete, now detecting new orders")
            if self._stop_requested and not self._loop_active:
                self._state = MonitorState.STOPPED

    async def _wait_for_next_cycle(self) -> None:
        assert self._wakeup is not None
        self._wakeup.clear()
        if self._stop_requested:
            return
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self._config.poll_interval_seconds)
        except asyncio.TimeoutError:
            pass

    # Baseline

    async def _capture_baseline(self, token: str) -> None:
        try:
            snapshot = await self._call(self._client.fetch_sales(token, self._config.sales_page_size))
        except Exception:
            LOGGER.exception("Could not capture the sales baseline")
        else:
            if not snapshot.ok:
                LOGGER.error("Sales API error during baseline: %s", snapshot.description)
            elif snapshot.sales:
                self._remember_products(snapshot.sales)
                self.watermarks.initialize_invoice(max(sale.invoice_id for sale in snapshot.sales))

        try:
            chats = await self._call(self._client.fetch_chats(token, self._config.chats_page_size))
        except Exception:
            LOGGER.exception("Could not capture the chat baseline")
            return

        self.watermarks.record_chat_count(len(chats))
        for chat in chats:
            try:
                messages = await self._call(
                    self._client.fetch_messages(token, chat.chat_id_i, self._config.messages_page_size)
                )
            except Exception as exc:
                LOGGER.warning("Could not capture messages baseline for chat %s: %s", chat.chat_id_i, exc)
            else:
                if messages:
                    latest = max(message.id for message in messages)
                    self.watermarks.initialize_or_get_message_watermark(chat.chat_id_i, latest)
            await self._product_name(token, chat.product_id)

    # Poll cycle

    async def _poll(self) -> None:
        try:
            token = await self._tokens.get_token()
        except Exception:
            LOGGER.exception("Poll skipped: could not obtain a token")
            return

        await self._check_orders(token)

        try:
            chats = await self._call(self._client.fetch_chats(token, self._config.chats_page_size))
        except Exception:
            LOGGER.exception("Chat checks skipped: could not fetch chats")
            return

        await self._check_new_chats(token, chats)
        await self._check_messages(token, chats)

    async def _check_orders(self, token: str) -> None:
        try:
            snapshot = await self._call(self._client.fetch_sales(token, self._config.sales_page_size))
        except Exception:
            LOGGER.exception("Order check skipped: could not fetch sales")
            return

        if not snapshot.ok:
            LOGGER.error("Sales API error: %s", snapshot.description)
            # A rejected token surfaces here as a soft error.
            self._tokens.clear()
            return

        self._remember_products(snapshot.sales)
        new_sales = self._differ.diff_sales(snapshot.sales, alerts_enabled=self._first_poll_complete)
        for sale in new_sales:
            enriched = await self._enrich_sale(token, sale)
            await self._emitter.emit(NewOrder(sale=enriched))

    async def _check_new_chats(self, token: str, chats: Sequence[Chat]) -> None:
        for chat in self._differ.diff_chat_count(chats):
            try:
                await self._announce_new_chat(token, chat)
            except Exception:
                LOGGER.exception("Failed to process new chat %s", chat.chat_id_i)

    async def _announce_new_chat(self, token: str, chat: Chat) -> None:
        product_name = await self._product_name(token, chat.product_id)
        detail = await self._invoice_detail(token, chat.chat_id_i)
        chat = replace(chat, email=detail.buyer_email or chat.email)

        messages: Sequence[Message] = []
        try:
            messages = await self._call(
                self._client.fetch_messages(token, chat.chat_id_i, self._config.messages_page_size)
            )
        except Exception as exc:
            LOGGER.error("Could not fetch messages for new chat %s: %s", chat.chat_id_i, exc)

        initial = self._differ.seed_new_chat(chat.chat_id_i, messages)
        await self._emitter.emit(NewChat(chat=chat, product_name=product_name))
        if initial:
            await self._emitter.emit(
                NewMessages(chat=chat, product_name=product_name, messages=tuple(initial), initial=True)
            )

    async def _check_messages(self, token: str, chats: Sequence[Chat]) -> None:
        chats_with_news = 0
        for chat in chats:
            try:
                if await self._check_chat_messages(token, chat):
                    chats_with_news += 1
            except Exception:
                LOGGER.exception("Error checking messages for chat %s", chat.chat_id_i)
        LOGGER.debug("Checked %s chats, new messages in %s", len(chats), chats_with_news)

    async def _check_chat_messages(self, token: str, chat: Chat) -> bool:
        messages = await self._call(
            self._client.fetch_messages(token, chat.chat_id_i, self._config.messages_page_size)
        )
        new_messages = self._differ.diff_messages(chat.chat_id_i, messages)
        if not new_messages:
            return False

        product_name = await self._product_name(token, chat.product_id)
        detail = await self._invoice_detail(token, chat.chat_id_i)
        chat = replace(
            chat,
            email=detail.buyer_email or chat.email,
            message_count=max(chat.message_count, len(messages)),
        )
        await self._emitter.emit(
            NewMessages(chat=chat, product_name=product_name, messages=tuple(new_messages))
        )
        return True

    # Enrichment

    async def _enrich_sale(self, token: str, sale: Sale) -> Sale:
        detail = await self._invoice_detail(token, sale.invoice_id)
        if not detail.buyer_email:
            LOGGER.debug("No buyer email for invoice %s", sale.invoice_id)
        product = sale.product
        if not product.name:
            product = replace(product, name=await self._product_name(token, product.id))
        return replace(
            sale,
            product=product,
            buyer_email=detail.buyer_email,
            order_amount=detail.amount,
            currency_type=detail.currency,
        )

    async def _product_name(self, token: str, product_id: Optional[int]) -> str:
        if product_id is None:
            return fallback_product_name("unknown")
        return await self.cache.get_or_fetch_product_name(
            product_id,
            lambda pid: self._call(self._client.fetch_product_name(token, pid)),
        )

    async def _invoice_detail(self, token: str, invoice_id: int) -> InvoiceDetail:
        return await self.cache.get_or_fetch_invoice_detail(
            invoice_id,
            lambda iid: self._call(self._client.fetch_invoice_detail(token, iid)),
        )

    def _remember_products(self, sales: Sequence[Sale]) -> None:
        for sale in sales:
            self.cache.remember_product_name(sale.product.id, sale.product.name)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._config.request_timeout_seconds)
