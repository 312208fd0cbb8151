"""Notifier that only writes events to the log.

Used when Telegram delivery is disabled so detections remain visible.
"""

from __future__ import annotations

import logging

from core.enrichment import fallback_product_name
from core.events import MonitorEvent, NewChat, NewMessages, NewOrder

LOGGER = logging.getLogger(__name__)


class LoggingNotifier:
    async def emit(self, event: MonitorEvent) -> None:
        if isinstance(event, NewOrder):
            sale = event.sale
            LOGGER.info(
                "New order %s: %s (buyer: %s, amount: %s)",
                sale.invoice_id,
                sale.product.name or fallback_product_name(sale.product.id),
                sale.buyer_email or "unknown",
                sale.formatted_amount or "unknown",
            )
        elif isinstance(event, NewChat):
            LOGGER.info(
                "New chat for order %s: %s (customer: %s)",
                event.chat.chat_id_i,
                event.product_name,
                event.chat.email or "N/A",
            )
        elif isinstance(event, NewMessages):
            LOGGER.info(
                "%s new message(s) in order %s: %s",
                len(event.messages),
                event.chat.chat_id_i,
                event.product_name,
            )
            for message in event.messages:
                sender = "Customer" if message.sender_is_buyer else "You"
                LOGGER.info("  %s: %s", sender, message.body)
