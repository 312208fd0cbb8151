"""Ports (interfaces) used by the monitor.

Ports define the minimal contracts for the marketplace, the token source and
notification adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Protocol

from core.events import MonitorEvent
from core.models import Chat, InvoiceDetail, Message, SalesSnapshot


class TokenProvider(Protocol):
    """Returns a bearer token, cached and refreshed by the implementation."""

    async def get_token(self) -> str:
        ...

    def clear(self) -> None:
        """Forget the cached token; the next get_token() logs in again."""


class MarketplaceClient(Protocol):
    """Marketplace reads required by the monitor."""

    async def fetch_sales(self, token: str, limit: int) -> SalesSnapshot:
        ...

    async def fetch_chats(self, token: str, limit: int) -> list[Chat]:
        ...

    async def fetch_messages(self, token: str, chat_id_i: int, limit: int) -> list[Message]:
        ...

    async def fetch_product_name(self, token: str, product_id: int) -> str:
        ...

    async def fetch_invoice_detail(self, token: str, invoice_id: int) -> InvoiceDetail:
        ...


class NotifierPort(Protocol):
    """Notification operations required by the monitor."""

    async def emit(self, event: MonitorEvent) -> None:
        ...
