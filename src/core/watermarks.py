"""In-memory watermarks for incremental change detection (core domain).

A watermark is the highest id already processed for a stream: invoices, or
messages within one chat. Anything at or below it is never reported again.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger(__name__)


class WatermarkStore:
    """Holds the last invoice id, last chat count and per-chat message ids.

    Each monitor owns its own store; nothing here is shared or persisted.
    """

    def __init__(self) -> None:
        self._last_invoice_id: Optional[int] = None
        self._last_chat_count = 0
        self._last_message_ids: dict[int, int] = {}

    @property
    def last_invoice_id(self) -> Optional[int]:
        return self._last_invoice_id

    @property
    def last_chat_count(self) -> int:
        return self._last_chat_count

    @property
    def tracked_chats(self) -> int:
        return len(self._last_message_ids)

    def message_watermark(self, chat_id_i: int) -> Optional[int]:
        return self._last_message_ids.get(chat_id_i)

    def initialize_invoice(self, invoice_id: int) -> bool:
        """Set the invoice baseline once; return True if it was set."""

        if self._last_invoice_id is not None:
            return False
        self._last_invoice_id = invoice_id
        LOGGER.debug("Invoice watermark initialized to %s", invoice_id)
        return True

    def advance_invoice(self, invoice_id: int) -> None:
        """Move the invoice watermark forward to invoice_id.

        Callers pass the highest id of a batch of newly detected sales.
        """

        current = self._last_invoice_id
        if current is not None and invoice_id < current:
            LOGGER.warning(
                "Refusing to move invoice watermark backward (%s -> %s)", current, invoice_id
            )
            return
        self._last_invoice_id = invoice_id
        LOGGER.debug("Invoice watermark advanced to %s", invoice_id)

    def initialize_or_get_message_watermark(self, chat_id_i: int, candidate_id: int) -> Optional[int]:
        """Return the stored watermark, or seed it and return None for unseen chats.

        None means the chat is being observed for the first time and its
        current messages must not be reported.
        """

        stored = self._last_message_ids.get(chat_id_i)
        if stored is None:
            self._last_message_ids[chat_id_i] = candidate_id
            LOGGER.debug("Chat %s message watermark initialized to %s", chat_id_i, candidate_id)
            return None
        return stored

    def advance_message_watermark(self, chat_id_i: int, message_id: int) -> None:
        current = self._last_message_ids.get(chat_id_i)
        if current is not None and message_id < current:
            LOGGER.warning(
                "Refusing to move chat %s message watermark backward (%s -> %s)",
                chat_id_i,
                current,
                message_id,
            )
            return
        self._last_message_ids[chat_id_i] = message_id

    def record_chat_count(self, count: int) -> None:
        self._last_chat_count = count
