"""Price feed connector.

Owns exactly one active tick source. Live credentials select the Finnhub
stream; without them the connector falls back to the simulated stream and
reports that through the returned FeedMode. Ticks are stamped with wall-clock
time and published on the event bus.
"""

from datetime import datetime
from typing import Callable, Optional

from core.config import FEED_SYMBOL, SIM_TICK_INTERVAL_SECONDS, settings
from core.events import EventBus
from core.logging_utils import get_logger
from core.models import FeedMode, Tick, utc_now
from datafeeds.collectors import LiveTickSource, SimulatedTickSource

logger = get_logger(__name__)


class FeedConnector:
    """Selects, starts and stops the tick source for one symbol."""

    def __init__(
        self,
        bus: EventBus,
        api_key: Optional[str] = None,
        symbol: str = FEED_SYMBOL,
        clock: Callable[[], datetime] = utc_now,
        live_factory: Optional[Callable[..., LiveTickSource]] = None,
        simulated_interval: float = SIM_TICK_INTERVAL_SECONDS,
    ):
        self.bus = bus
        self.api_key = settings.finnhub_api_key if api_key is None else api_key
        self.symbol = symbol
        self._clock = clock
        self._live_factory = live_factory or LiveTickSource
        self._simulated = SimulatedTickSource(on_price=self._on_price, interval=simulated_interval)
        self._live: Optional[LiveTickSource] = None
        self._mode: Optional[FeedMode] = None

        self.ticks_emitted = 0
        self.last_tick: Optional[Tick] = None

    @property
    def mode(self) -> Optional[FeedMode]:
        return self._mode

    @property
    def simulated(self) -> SimulatedTickSource:
        return self._simulated

    @property
    def is_connected(self) -> bool:
        if self._mode == FeedMode.LIVE:
            return self._live is not None and self._live.is_connected
        return self._mode == FeedMode.SIMULATED and self._simulated.is_active

    async def connect(self) -> FeedMode:
        """Start a tick source and report which one was selected."""
        if self._mode == FeedMode.LIVE and self._live is not None and self._live.is_active:
            logger.info("[FEED] Live connection already open")
            return FeedMode.LIVE
        if self._mode == FeedMode.SIMULATED and self._simulated.is_active:
            return FeedMode.SIMULATED

        if not self.api_key.strip():
            logger.warning("[FEED] No FINNHUB_API_KEY, falling back to simulated market data")
            self._simulated.start()
            self._mode = FeedMode.SIMULATED
            return self._mode

        if self._live is not None:
            await self._live.stop()
        logger.info("[FEED] Connecting to live feed for %s", self.symbol)
        self._live = self._live_factory(
            api_key=self.api_key,
            on_price=self._on_price,
            symbol=self.symbol,
        )
        self._live.start()
        self._mode = FeedMode.LIVE
        return self._mode

    async def disconnect(self):
        """Stop whichever source is running. Safe to call repeatedly."""
        await self._simulated.stop()
        if self._live is not None:
            await self._live.stop()
            self._live = None
        if self._mode is not None:
            logger.info("[FEED] Disconnected (%s)", self._mode.value)
        self._mode = None

    def _on_price(self, price: float):
        tick = Tick(price=price, observed_at=self._clock())
        self.ticks_emitted += 1
        self.last_tick = tick
        self.bus.emit_tick(tick)
