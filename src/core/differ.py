"""Snapshot diffing against the watermark store (core domain).

Each diff compares a freshly fetched snapshot with the stored watermarks,
returns the new items in ascending id order and advances the watermark in
the same call, so a read and its advance are never separated.
"""

from __future__ import annotations

import logging
from typing import Sequence

from core.models import Chat, Message, Sale
from core.watermarks import WatermarkStore

LOGGER = logging.getLogger(__name__)


class SnapshotDiffer:
    """Derives new sales, chats and messages from full snapshots."""

    def __init__(self, watermarks: WatermarkStore) -> None:
        self._watermarks = watermarks

    def diff_sales(self, sales: Sequence[Sale], alerts_enabled: bool = True) -> list[Sale]:
        """Return sales newer than the invoice watermark, oldest first.

        The first observation only establishes a baseline: the last-sales
        endpoint has no notion of "since", so everything it returns on a cold
        start is treated as already known. Orders placed faster than the
        fetch window between two polls are only partially visible.
        """

        if not sales:
            return []

        max_in_batch = max(sale.invoice_id for sale in sales)
        last_id = self._watermarks.last_invoice_id
        if last_id is None:
            self._watermarks.initialize_invoice(max_in_batch)
            LOGGER.info("Tracking orders from invoice %s", max_in_batch)
            return []

        LOGGER.debug(
            "Checking orders %s against last known %s",
            [sale.invoice_id for sale in sales],
            last_id,
        )
        if not alerts_enabled:
            # Left unadvanced so these sales surface on the next poll.
            return []

        new_sales = sorted(
            (sale for sale in sales if sale.invoice_id > last_id),
            key=lambda sale: sale.invoice_id,
        )
        if not new_sales:
            return []

        # Highest id of the new subset; list position is not reliable.
        self._watermarks.advance_invoice(new_sales[-1].invoice_id)
        LOGGER.info("Found %s new order(s), tracking from invoice %s", len(new_sales), new_sales[-1].invoice_id)
        return new_sales

    def diff_chat_count(self, chats: Sequence[Chat]) -> list[Chat]:
        """Return chats that appeared since the last poll.

        The chat list is assumed to be newest first, so the first
        len(chats) - last_count entries are the new ones. Nothing is flagged
        on the first observation (last count 0).
        """

        current = len(chats)
        last_count = self._watermarks.last_chat_count
        new_chats: list[Chat] = []
        if last_count > 0 and current > last_count:
            new_chats = list(chats[: current - last_count])
            LOGGER.info("Detected %s new chat(s)", len(new_chats))
        LOGGER.debug("Chat count %s (last known %s)", current, last_count)
        self._watermarks.record_chat_count(current)
        return new_chats

    def seed_new_chat(self, chat_id_i: int, messages: Sequence[Message]) -> list[Message]:
        """Return the initial messages of a newly created chat and seed its watermark.

        All messages count as initial, except any already covered by an
        existing watermark for this chat.
        """

        ordered = sorted(messages, key=lambda message: message.id)
        stored = self._watermarks.message_watermark(chat_id_i)
        if stored is not None:
            ordered = [message for message in ordered if message.id > stored]

        latest = ordered[-1].id if ordered else 0
        if stored is None or latest > stored:
            self._watermarks.advance_message_watermark(chat_id_i, latest)
        return ordered

    def diff_messages(self, chat_id_i: int, messages: Sequence[Message]) -> list[Message]:
        """Return messages above the chat's watermark, batched and ascending."""

        if not messages:
            return []

        latest = max(message.id for message in messages)
        stored = self._watermarks.initialize_or_get_message_watermark(chat_id_i, latest)
        if stored is None:
            return []
        if latest <= stored:
            return []

        new_messages = sorted(
            (message for message in messages if message.id > stored),
            key=lambda message: message.id,
        )
        self._watermarks.advance_message_watermark(chat_id_i, latest)
        LOGGER.info(
            "Detected %s new message(s) in chat %s (last known %s, latest %s)",
            len(new_messages),
            chat_id_i,
            stored,
            latest,
        )
        return new_messages
