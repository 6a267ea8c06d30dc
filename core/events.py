"""Lightweight event bus for ticks and bars.

Sources publish, consumers subscribe and get a Subscription back; cancelling
it is the explicit unsubscribe used when the bot stops.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from core.models import BarUpdate, Tick

logger = logging.getLogger(__name__)

TickHandler = Callable[[Tick], None]
BarHandler = Callable[[BarUpdate], None]


class Subscription:
    """Handle for one registered handler."""

    def __init__(self, handlers: list, handler: Callable):
        self._handlers = handlers
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> bool:
        """Remove the handler. Returns True the first time, False afterwards."""
        if not self._active:
            return False
        self._active = False
        try:
            self._handlers.remove(self._handler)
        except ValueError:
            return False
        return True


class EventBus:
    """Minimal sync bus; handlers run in emit order on the caller's loop."""

    def __init__(self):
        self._tick_handlers: List[TickHandler] = []
        self._bar_handlers: List[BarHandler] = []

    def subscribe_ticks(self, handler: TickHandler) -> Subscription:
        self._tick_handlers.append(handler)
        return Subscription(self._tick_handlers, handler)

    def subscribe_bars(self, handler: BarHandler) -> Subscription:
        self._bar_handlers.append(handler)
        return Subscription(self._bar_handlers, handler)

    def emit_tick(self, tick: Tick) -> None:
        for handler in list(self._tick_handlers):
            try:
                handler(tick)
            except Exception:
                # Never break the data path on a bad consumer
                logger.exception("[EVENT] Tick handler error")

    def emit_bar(self, update: BarUpdate) -> None:
        for handler in list(self._bar_handlers):
            try:
                handler(update)
            except Exception:
                logger.exception("[EVENT] Bar handler error")

    @property
    def tick_handler_count(self) -> int:
        return len(self._tick_handlers)

    @property
    def bar_handler_count(self) -> int:
        return len(self._bar_handlers)
