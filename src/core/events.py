"""Typed events handed to the notifier.

The set is closed: every notifier handles exactly these three variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from core.models import Chat, Message, Sale


@dataclass(frozen=True)
class NewOrder:
    kind: ClassVar[str] = "new_order"

    sale: Sale


@dataclass(frozen=True)
class NewChat:
    kind: ClassVar[str] = "new_chat"

    chat: Chat
    product_name: str


@dataclass(frozen=True)
class NewMessages:
    """New messages in one chat, batched per poll in ascending id order.

    initial is True when the messages arrived together with a new chat.
    """

    kind: ClassVar[str] = "new_messages"

    chat: Chat
    product_name: str
    messages: tuple[Message, ...]
    initial: bool = False


MonitorEvent = Union[NewOrder, NewChat, NewMessages]

EVENT_KINDS = (NewOrder.kind, NewChat.kind, NewMessages.kind)
