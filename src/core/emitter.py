"""Event emission on top of the notifier port."""

from __future__ import annotations

import logging

from core.events import EVENT_KINDS, MonitorEvent
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)


class EventEmitter:
    """Hand events to the notifier and count deliveries per kind.

    Delivery is best effort: a notifier failure is logged, counted under
    ``failures`` and never reaches the poll cycle.
    """

    def __init__(self, notifier: NotifierPort) -> None:
        self._notifier = notifier
        self._counts: dict[str, int] = {kind: 0 for kind in EVENT_KINDS}
        self._failures = 0

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    @property
    def failures(self) -> int:
        return self._failures

    async def emit(self, event: MonitorEvent) -> None:
        try:
            await self._notifier.emit(event)
        except Exception:
            self._failures += 1
            LOGGER.exception("Notifier failed to deliver %s event", event.kind)
            return
        self._counts[event.kind] += 1
