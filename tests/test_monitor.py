from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import pytest

from core.config import MonitorConfig
from core.errors import MarketplaceApiError, MarketplaceError, TokenError
from core.events import NewChat, NewMessages, NewOrder
from core.models import Chat, InvoiceDetail, Message, Product, Sale, SalesSnapshot
from core.monitor import ChatMonitor, MonitorState


class FakeTokens:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0
        self.clears = 0

    async def get_token(self) -> str:
        self.calls += 1
        if self.fail:
            raise TokenError("login refused")
        return "token"

    def clear(self) -> None:
        self.clears += 1


class FakeMarketplace:
    def __init__(self) -> None:
        self.sales = SalesSnapshot(ok=True)
        self.chats: list[Chat] = []
        self.messages: dict[int, list[Message]] = {}
        self.product_names: dict[int, str] = {}
        self.invoice_details: dict[int, InvoiceDetail] = {}
        self.fail_sales = False
        self.failing_invoices: set[int] = set()
        self.failing_chats: set[int] = set()
        self.slow_chats: set[int] = set()
        self.on_fetch_chats: Optional[Callable[[], Awaitable[None]]] = None
        self.message_fetches: list[int] = []

    def set_sales(self, *invoice_ids: int) -> None:
        self.sales = SalesSnapshot(
            ok=True,
            sales=tuple(
                Sale(invoice_id=invoice_id, product=Product(id=7, name="Game Key")) for invoice_id in invoice_ids
            ),
        )

    def set_chats(self, *chat_ids: int) -> None:
        self.chats = [Chat(chat_id_i=chat_id, chat_id=chat_id + 9000, product_id=7) for chat_id in chat_ids]

    def set_messages(self, chat_id_i: int, *message_ids: int) -> None:
        self.messages[chat_id_i] = [
            Message(id=message_id, body=f"hello {message_id}", sender_is_buyer=True) for message_id in message_ids
        ]

    async def fetch_sales(self, token: str, limit: int) -> SalesSnapshot:
        if self.fail_sales:
            raise MarketplaceError("connection reset")
        return self.sales

    async def fetch_chats(self, token: str, limit: int) -> list[Chat]:
        if self.on_fetch_chats is not None:
            await self.on_fetch_chats()
        return list(self.chats)

    async def fetch_messages(self, token: str, chat_id_i: int, limit: int) -> list[Message]:
        self.message_fetches.append(chat_id_i)
        if chat_id_i in self.failing_chats:
            raise MarketplaceError("HTTP 502", status=502)
        if chat_id_i in self.slow_chats:
            await asyncio.sleep(1)
        return list(self.messages.get(chat_id_i, []))

    async def fetch_product_name(self, token: str, product_id: int) -> str:
        if product_id not in self.product_names:
            raise MarketplaceApiError(1, "product not found")
        return self.product_names[product_id]

    async def fetch_invoice_detail(self, token: str, invoice_id: int) -> InvoiceDetail:
        if invoice_id in self.failing_invoices:
            raise MarketplaceError("HTTP 500", status=500)
        return self.invoice_details.get(invoice_id, InvoiceDetail.empty())


class FakeNotifier:
    def __init__(self) -> None:
        self.events: list = []

    async def emit(self, event) -> None:
        self.events.append(event)


def _monitor(market: FakeMarketplace, notifier: FakeNotifier, tokens: Optional[FakeTokens] = None) -> ChatMonitor:
    return ChatMonitor(
        client=market,
        token_provider=tokens or FakeTokens(),
        notifier=notifier,
        config=MonitorConfig(poll_interval_seconds=0.01, request_timeout_seconds=0.2),
    )


def test_end_to_end_new_order_chat_and_messages() -> None:
    market = FakeMarketplace()
    market.product_names[7] = "Game Key"
    market.invoice_details[101] = InvoiceDetail(buyer_email="buyer@example.com", amount="10", currency="USD")
    market.set_sales(100, 99)
    market.set_chats(1, 2, 3)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        assert monitor.watermarks.last_invoice_id == 100
        assert monitor.watermarks.last_chat_count == 3
        assert monitor.watermarks.tracked_chats == 0

        # Warm-up poll right after the baseline; orders it sees are reported
        # by the next poll.
        await monitor.run_cycle()
        assert notifier.events == []

        market.set_sales(101, 100, 99)
        market.set_chats(101, 1, 2, 3)
        market.set_messages(101, 2, 1)
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert [event.kind for event in notifier.events] == ["new_order", "new_chat", "new_messages"]
    order, chat, messages = notifier.events
    assert isinstance(order, NewOrder)
    assert order.sale.invoice_id == 101
    assert order.sale.buyer_email == "buyer@example.com"
    assert order.sale.formatted_amount == "10 USD"
    assert isinstance(chat, NewChat)
    assert chat.chat.chat_id_i == 101
    assert chat.chat.email == "buyer@example.com"
    assert chat.product_name == "Game Key"
    assert isinstance(messages, NewMessages)
    assert messages.initial
    assert [message.id for message in messages.messages] == [1, 2]

    assert monitor.watermarks.last_invoice_id == 101
    assert monitor.watermarks.last_chat_count == 4
    assert monitor.watermarks.message_watermark(101) == 2
    assert monitor.stats().events_emitted == {"new_order": 1, "new_chat": 1, "new_messages": 1}


def test_sale_without_product_name_does_not_pin_a_placeholder() -> None:
    market = FakeMarketplace()
    market.product_names[7] = "Real Game Key"
    market.sales = SalesSnapshot(ok=True, sales=(Sale(invoice_id=10, product=Product(id=7, name=None)),))
    market.set_chats(55)
    market.set_messages(55, 1)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()
        market.sales = SalesSnapshot(
            ok=True,
            sales=tuple(Sale(invoice_id=invoice_id, product=Product(id=7, name=None)) for invoice_id in (11, 10)),
        )
        market.set_messages(55, 1, 2)
        await monitor.run_cycle()

    asyncio.run(scenario())

    order, messages = notifier.events
    assert isinstance(order, NewOrder)
    assert order.sale.product.name == "Real Game Key"
    assert isinstance(messages, NewMessages)
    assert messages.product_name == "Real Game Key"


def test_orders_are_held_until_first_poll_completes() -> None:
    market = FakeMarketplace()
    market.set_sales(100)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        market.set_sales(101, 100)
        await monitor.run_cycle()
        assert notifier.events == []
        assert monitor.first_poll_complete
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert [event.sale.invoice_id for event in notifier.events] == [101]


def test_enrichment_failure_still_emits_every_order() -> None:
    market = FakeMarketplace()
    market.set_sales(10)
    market.failing_invoices.add(11)
    market.invoice_details[12] = InvoiceDetail(buyer_email="second@example.com")
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()
        market.set_sales(12, 11, 10)
        await monitor.run_cycle()

    asyncio.run(scenario())

    sales = [event.sale for event in notifier.events]
    assert [sale.invoice_id for sale in sales] == [11, 12]
    assert sales[0].buyer_email is None
    assert sales[0].order_amount is None
    assert sales[1].buyer_email == "second@example.com"
    assert monitor.cache.invoice_count == 1


def test_sales_failure_does_not_block_message_checks() -> None:
    market = FakeMarketplace()
    market.set_sales(10)
    market.set_chats(5)
    market.set_messages(5, 1)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()
        market.fail_sales = True
        market.set_messages(5, 1, 2)
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert [event.kind for event in notifier.events] == ["new_messages"]
    assert monitor.watermarks.last_invoice_id == 10


def test_sales_soft_error_is_skipped_and_token_dropped() -> None:
    market = FakeMarketplace()
    market.set_sales(10)
    notifier = FakeNotifier()
    tokens = FakeTokens()
    monitor = _monitor(market, notifier, tokens)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()
        market.sales = SalesSnapshot(ok=False, description="invalid token")
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert notifier.events == []
    assert monitor.watermarks.last_invoice_id == 10
    assert tokens.clears == 1


def test_one_chat_failure_does_not_stop_other_chats() -> None:
    market = FakeMarketplace()
    market.set_chats(1, 2, 3)
    for chat_id in (1, 2, 3):
        market.set_messages(chat_id, 10)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        market.failing_chats.add(1)
        market.slow_chats.add(2)
        market.set_messages(3, 10, 11)
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert len(notifier.events) == 1
    assert notifier.events[0].chat.chat_id_i == 3
    assert [message.id for message in notifier.events[0].messages] == [11]
    assert monitor.watermarks.message_watermark(1) == 10
    assert monitor.watermarks.message_watermark(2) == 10


def test_messages_in_existing_chat_are_batched() -> None:
    market = FakeMarketplace()
    market.set_chats(55)
    market.set_messages(55, 98, 100)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        market.set_messages(55, 98, 100, 101, 102, 105)
        await monitor.run_cycle()
        # Same snapshot again: nothing new.
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert not event.initial
    assert [message.id for message in event.messages] == [101, 102, 105]
    assert event.product_name == "Product 7"
    assert monitor.watermarks.message_watermark(55) == 105


def test_token_failure_skips_cycle() -> None:
    market = FakeMarketplace()
    market.set_sales(10)
    tokens = FakeTokens(fail=True)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier, tokens)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert monitor.state is MonitorState.RUNNING
    assert monitor.watermarks.last_invoice_id is None
    assert monitor.stats().cycles_completed == 1
    assert notifier.events == []


def test_notifier_failure_does_not_abort_cycle() -> None:
    class BrokenNotifier(FakeNotifier):
        async def emit(self, event) -> None:
            await super().emit(event)
            raise RuntimeError("telegram down")

    market = FakeMarketplace()
    market.set_sales(1)
    notifier = BrokenNotifier()
    monitor = _monitor(market, notifier)

    async def scenario() -> None:
        await monitor.start()
        await monitor.run_cycle()
        market.set_sales(3, 2, 1)
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert [event.sale.invoice_id for event in notifier.events] == [2, 3]
    stats = monitor.stats()
    assert stats.events_emitted["new_order"] == 0
    assert stats.delivery_failures == 2


def test_overlapping_cycle_is_rejected() -> None:
    market = FakeMarketplace()
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)
    errors: list[Exception] = []

    async def reenter() -> None:
        market.on_fetch_chats = None
        try:
            await monitor.run_cycle()
        except RuntimeError as exc:
            errors.append(exc)

    async def scenario() -> None:
        await monitor.start()
        market.on_fetch_chats = reenter
        await monitor.run_cycle()

    asyncio.run(scenario())

    assert len(errors) == 1


def test_stop_lets_in_flight_cycle_finish() -> None:
    market = FakeMarketplace()
    market.set_chats(1)
    notifier = FakeNotifier()
    monitor = _monitor(market, notifier)
    chat_fetches = 0

    async def stop_on_second_cycle() -> None:
        nonlocal chat_fetches
        chat_fetches += 1
        if chat_fetches == 3:
            monitor.stop()

    market.on_fetch_chats = stop_on_second_cycle
    asyncio.run(asyncio.wait_for(monitor.run(), timeout=5))

    assert monitor.state is MonitorState.STOPPED
    assert monitor.stats().cycles_completed == 2
    # Baseline plus two cycles each fetched messages for the chat.
    assert market.message_fetches == [1, 1, 1]


def test_stop_when_not_running_is_a_no_op() -> None:
    monitor = _monitor(FakeMarketplace(), FakeNotifier())
    monitor.stop()
    assert monitor.state is MonitorState.STOPPED


def test_monitors_do_not_share_state() -> None:
    market = FakeMarketplace()
    market.set_sales(10)
    first = _monitor(market, FakeNotifier())
    second = _monitor(market, FakeNotifier())

    asyncio.run(first.start())

    assert first.watermarks.last_invoice_id == 10
    assert second.watermarks.last_invoice_id is None


@pytest.mark.parametrize("method", ["start", "run_cycle"])
def test_stats_reflect_state(method: str) -> None:
    market = FakeMarketplace()
    market.set_sales(42)
    market.set_chats(1, 2)
    monitor = _monitor(market, FakeNotifier())

    asyncio.run(getattr(monitor, method)())
    stats = monitor.stats()

    assert stats.last_invoice_id == 42
    assert stats.total_chats == 2
    assert stats.cached_products == 1
