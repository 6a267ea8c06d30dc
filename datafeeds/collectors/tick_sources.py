"""Tick sources: Finnhub trade WebSocket and a synthetic random walk."""

import asyncio
import json
import random
from typing import Awaitable, Callable, Optional

import websockets

from core.config import (
    FEED_SYMBOL,
    FEED_URL,
    RECONNECT_DELAY_SECONDS,
    SIM_PRICE_FLOOR,
    SIM_START_PRICE,
    SIM_TICK_INTERVAL_SECONDS,
)
from core.logging_utils import get_logger

logger = get_logger(__name__)

PriceCallback = Callable[[float], None]
Sleep = Callable[[float], Awaitable[None]]


async def _finish(task: Optional[asyncio.Task]):
    """Cancel a task and wait for it to unwind."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


class LiveTickSource:
    """Streams trade prices for one symbol from the Finnhub WebSocket.

    Unexpected disconnects schedule one reconnect after a fixed delay; each
    failed attempt schedules the next. `stop()` is the only way out.
    """

    def __init__(
        self,
        api_key: str,
        on_price: PriceCallback,
        symbol: str = FEED_SYMBOL,
        url: str = FEED_URL,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        connect: Callable = websockets.connect,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_key = api_key
        self.on_price = on_price
        self.symbol = symbol
        self.url = url
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self._sleep = sleep

        self._task: Optional[asyncio.Task] = None
        self._ws = None
        self._connected = False
        self._stopping = False
        self._last_price: Optional[float] = None

        # Stats
        self.connect_count = 0
        self.reconnect_count = 0
        self.messages_received = 0

    @property
    def is_active(self) -> bool:
        """True while the stream task is alive (connected or waiting to reconnect)."""
        return self._task is not None and not self._task.done()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _ws_url(self) -> str:
        return f"{self.url}?token={self.api_key}"

    def _message(self, msg_type: str) -> str:
        return json.dumps({"type": msg_type, "symbol": self.symbol})

    def start(self):
        if self.is_active:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="live-tick-source")

    async def stop(self):
        """Intentional disconnect: cancel any pending reconnect and close cleanly."""
        self._stopping = True
        ws = self._ws
        if ws is not None:
            if self._connected:
                try:
                    await ws.send(self._message("unsubscribe"))
                except websockets.ConnectionClosed:
                    logger.debug("[FEED] Unsubscribe skipped, socket already closed")
            logger.info("[FEED] Disconnecting from %s", self.url)
            await ws.close()
        await _finish(self._task)
        self._task = None
        self._ws = None
        self._connected = False

    async def _run(self):
        while not self._stopping:
            try:
                await self._session()
                if not self._stopping:
                    logger.warning("[FEED] Connection closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._stopping:
                    break
                logger.warning("[FEED] Connection error: %s", e)

            if self._stopping:
                break
            logger.info("[FEED] Reconnecting in %.0fs...", self.reconnect_delay)
            await self._sleep(self.reconnect_delay)
            self.reconnect_count += 1

    async def _session(self):
        async with self._connect(self._ws_url()) as ws:
            self._ws = ws
            try:
                await ws.send(self._message("subscribe"))
                self._connected = True
                self.connect_count += 1
                logger.info("[FEED] Connected, subscribed to %s trades", self.symbol)

                async for message in ws:
                    self.messages_received += 1
                    self._handle_message(message)
            finally:
                self._connected = False
                self._ws = None

    def _handle_message(self, message):
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("[FEED] Unparsable message: %s", e)
            return

        if not isinstance(data, dict) or data.get("type") != "trade":
            return  # pings, acks
        trades = data.get("data") or []
        if not trades:
            return

        try:
            price = float(trades[-1]["p"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error("[FEED] Malformed trade message: %s", e)
            return

        if price != self._last_price:
            self._last_price = price
            self.on_price(price)


class SimulatedTickSource:
    """Synthetic price stream used when no live credentials are configured.

    Each interval applies a small random step biased slightly upwards and
    clamps the result to a floor. The price carries over across restarts.
    """

    def __init__(
        self,
        on_price: PriceCallback,
        interval: float = SIM_TICK_INTERVAL_SECONDS,
        start_price: float = SIM_START_PRICE,
        floor: float = SIM_PRICE_FLOOR,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.on_price = on_price
        self.interval = interval
        self.price = start_price
        self.floor = floor
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_price(self) -> float:
        change = (self._rng.random() - 0.495) * (self.price * 0.001)
        self.price = max(self.price + change, self.floor)
        return self.price

    def start(self):
        if self.is_active:
            return
        logger.info("[MOCK] Starting simulated price stream @ %.2f", self.price)
        self._task = asyncio.create_task(self._run(), name="simulated-tick-source")

    async def stop(self):
        if self._task is None:
            return
        await _finish(self._task)
        self._task = None
        logger.info("[MOCK] Stopped simulated price stream")

    async def _run(self):
        while True:
            await self._sleep(self.interval)
            self.on_price(self.next_price())
