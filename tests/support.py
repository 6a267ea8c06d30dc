"""Shared helpers for the test suite."""

import asyncio
from datetime import datetime, timedelta, timezone

from core.models import Tick

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def tick_at(price: float, seconds: float) -> Tick:
    """Tick observed `seconds` after T0."""
    return Tick(price=price, observed_at=T0 + timedelta(seconds=seconds))


def bar_ticks(closes, width: float = 15.0) -> list[Tick]:
    """One tick per bar bucket, so each close opens a new bar."""
    return [tick_at(price, i * width) for i, price in enumerate(closes)]


async def wait_until(predicate, timeout: float = 1.0):
    """Yield to the loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0)


class FakeReasoner:
    """Returns queued payloads; an Exception instance is raised instead.

    With `gate` set, every call waits for the gate before answering.
    """

    def __init__(self, *payloads, gate: asyncio.Event | None = None):
        self.payloads = list(payloads)
        self.gate = gate
        self.requests = []

    async def decide(self, request):
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        payload = self.payloads.pop(0) if self.payloads else {
            "decision": "HOLD", "reasoning": "default", "tradePercentage": 0.0,
        }
        if isinstance(payload, Exception):
            raise payload
        return payload


def feed_bars(controller, closes, width: float = 15.0):
    """Push one tick per bar through the controller's bus."""
    for tick in bar_ticks(closes, width):
        controller.bus.emit_tick(tick)
