"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to the marketplace's JSON payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Product:
    """Product fields as returned inside a sale; name is None when omitted."""

    id: int
    name: Optional[str]
    price_usd: Optional[str] = None
    price_eur: Optional[str] = None
    price_rub: Optional[str] = None
    price_uah: Optional[str] = None


@dataclass(frozen=True)
class Sale:
    """One order from the last-sales endpoint, optionally enriched."""

    invoice_id: int
    product: Product
    date: Optional[datetime] = None
    buyer_email: Optional[str] = None
    order_amount: Optional[str] = None
    currency_type: Optional[str] = None

    @property
    def formatted_amount(self) -> Optional[str]:
        if self.order_amount and self.currency_type:
            return f"{self.order_amount} {self.currency_type}"
        return None


@dataclass(frozen=True)
class SalesSnapshot:
    """Sales fetch result; ok=False is an API-level soft error."""

    ok: bool
    sales: tuple[Sale, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True)
class Chat:
    """A buyer chat attached to an order.

    chat_id_i is the order (invoice) number and the key used for message
    watermarks. chat_id is the marketplace's internal chat id, used only for
    display.
    """

    chat_id_i: int
    chat_id: Optional[int] = None
    product_id: Optional[int] = None
    email: Optional[str] = None
    message_count: int = 0
    unread_count: int = 0
    last_activity: Optional[datetime] = None


@dataclass(frozen=True)
class Attachment:
    filename: str
    url: Optional[str] = None
    is_image: bool = False


@dataclass(frozen=True)
class Message:
    """A single chat message. Ids increase monotonically within a chat."""

    id: int
    body: str
    sender_is_buyer: bool
    written_at: Optional[datetime] = None
    seen_at: Optional[datetime] = None
    attachment: Optional[Attachment] = None


@dataclass(frozen=True)
class InvoiceDetail:
    """Purchase details used to enrich orders and chats."""

    buyer_email: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None

    @classmethod
    def empty(cls) -> "InvoiceDetail":
        return cls()


@dataclass(frozen=True)
class MonitorStats:
    """Point-in-time counters reported by the monitor."""

    state: str
    total_chats: int
    tracked_chats: int
    cached_products: int
    cached_invoices: int
    last_invoice_id: Optional[int]
    poll_interval_seconds: float
    cycles_completed: int
    delivery_failures: int = 0
    events_emitted: dict[str, int] = field(default_factory=dict)
