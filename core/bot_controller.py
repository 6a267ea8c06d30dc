"""
Bot Controller - lifecycle state machine for the simulated trading bot.

    INACTIVE --start--> RUNNING <--cycle--> THINKING --failure--> ERROR
        ^                                                          |
        +---------------------------stop---------------------------+

The controller owns the feed connector, bar aggregator, ledger and decision
scheduler it is built with; there is no process-wide instance.

Every start and stop bumps `generation`. Work that suspends (a reasoning
call) carries the generation it started in and may only change state while
that generation is current.

Error policy: by default ERROR leaves the feed and timer running; firings
are turned away until an explicit stop/start. With `halt_on_error` the
scheduler is disarmed and the feed disconnected on entering ERROR (status
stays ERROR until stop).
"""

import asyncio
from typing import Callable, Optional, Union

from core.bar_aggregator import BarAggregator
from core.config import settings
from core.decision_cycle import DecisionCycleScheduler
from core.events import EventBus, Subscription
from core.journal import SessionJournal
from core.logging_utils import get_logger
from core.models import BarUpdate, BarView, BotStatus, FeedMode, IndicatorSnapshot, RiskLevel, Tick
from core.portfolio import PortfolioLedger
from core.state import BotSnapshot
from datafeeds.feed_connector import FeedConnector
from logic.indicators import indicator_series
from logic.reasoner import OllamaReasoner, Reasoner

logger = get_logger(__name__)


def _as_risk_level(level: Union[RiskLevel, str]) -> RiskLevel:
    return RiskLevel(level.lower().strip() if isinstance(level, str) else level)


class BotController:
    """
    Central controller for bot lifecycle management.

    Usage:
        controller = BotController()
        await controller.start()
        snapshot = controller.snapshot()
        await controller.stop()
    """

    def __init__(
        self,
        feed: Optional[FeedConnector] = None,
        aggregator: Optional[BarAggregator] = None,
        ledger: Optional[PortfolioLedger] = None,
        reasoner: Optional[Reasoner] = None,
        journal: Optional[SessionJournal] = None,
        risk_level: Union[RiskLevel, str, None] = None,
        halt_on_error: Optional[bool] = None,
        cycle_on_new_bar: Optional[bool] = None,
        **scheduler_options,
    ):
        self.bus = feed.bus if feed is not None else EventBus()
        self.feed = feed or FeedConnector(self.bus)
        self.aggregator = aggregator or BarAggregator()
        self.journal = journal
        self.ledger = ledger or PortfolioLedger(journal=journal)
        self.reasoner = reasoner or OllamaReasoner()
        self.halt_on_error = settings.halt_on_error if halt_on_error is None else halt_on_error
        self.cycle_on_new_bar = settings.cycle_on_new_bar if cycle_on_new_bar is None else cycle_on_new_bar
        self.scheduler = DecisionCycleScheduler(
            controller=self,
            aggregator=self.aggregator,
            ledger=self.ledger,
            reasoner=self.reasoner,
            **scheduler_options,
        )

        self._status = BotStatus.INACTIVE
        self._risk_level = _as_risk_level(risk_level or settings.risk_level)
        self._feed_mode: Optional[FeedMode] = None
        self._generation = 0
        self._subscriptions: list[Subscription] = []
        self._halt_task: Optional[asyncio.Task] = None
        self._callbacks: list[Callable[[BotStatus], None]] = []
        self.last_error: Optional[str] = None

    # === Read side ===

    @property
    def status(self) -> BotStatus:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def risk_level(self) -> RiskLevel:
        return self._risk_level

    @property
    def feed_mode(self) -> Optional[FeedMode]:
        return self._feed_mode

    @property
    def is_running(self) -> bool:
        return self._status.is_running

    def register_callback(self, callback: Callable[[BotStatus], None]):
        """Register callback for status changes."""
        self._callbacks.append(callback)

    def snapshot(self) -> BotSnapshot:
        bars = self.aggregator.bars()
        series = indicator_series([b.close for b in bars])
        views = tuple(BarView(bar=b, indicators=ind) for b, ind in zip(bars, series))
        price = self.aggregator.last_price
        return BotSnapshot(
            status=self._status,
            risk_level=self._risk_level,
            feed_mode=self._feed_mode,
            asset_name=self.ledger.asset_name,
            current_price=price,
            portfolio=self.ledger.state,
            portfolio_value=self.ledger.portfolio_value(price),
            profit_loss=self.ledger.profit_loss(price),
            profit_loss_pct=self.ledger.profit_loss_pct(price),
            bars=views,
            indicators=series[-1] if series else IndicatorSnapshot(),
            trades=self.ledger.trades,
            decisions=self.ledger.decisions,
            trade_count=self.ledger.trade_count,
            last_error=self.last_error,
            generation=self._generation,
            stale_ticks_dropped=self.aggregator.stale_ticks_dropped,
        )

    # === Commands ===

    async def start(self) -> dict:
        """Connect the feed, go RUNNING and arm the scheduler."""
        if self._status.is_running:
            return {"success": True, "status": self._status.value, "message": "Already running"}
        if self._status == BotStatus.ERROR:
            return {"success": False, "error": "Bot is in error state; stop it before starting again"}

        logger.info("[BOT] Starting (risk=%s)", self._risk_level.value)
        self._subscriptions.append(self.bus.subscribe_ticks(self._on_tick))
        if self.cycle_on_new_bar:
            self._subscriptions.append(self.bus.subscribe_bars(self._on_bar))

        self._feed_mode = await self.feed.connect()
        self._generation += 1
        self.last_error = None
        self._set_status(BotStatus.RUNNING)
        self.scheduler.arm()
        return {"success": True, "status": self._status.value, "mode": self._feed_mode.value}

    async def stop(self) -> dict:
        """Disarm the scheduler, disconnect the feed and go INACTIVE. Idempotent."""
        if self._status == BotStatus.INACTIVE and not self.scheduler.is_armed and self.feed.mode is None:
            return {"success": True, "status": self._status.value, "message": "Already stopped"}

        logger.info("[BOT] Stopping")
        # Fence in-flight cycles before the first suspension point
        self._generation += 1
        self._set_status(BotStatus.INACTIVE)

        if self._halt_task is not None:
            await self._halt_task
            self._halt_task = None
        await self._shutdown_inputs()
        self._feed_mode = None
        return {"success": True, "status": self._status.value}

    def set_risk_level(self, level: Union[RiskLevel, str]) -> dict:
        """Change the risk profile; rejected while running or thinking."""
        if self._status.is_running:
            return {"success": False, "error": f"Cannot change risk level while {self._status.value}"}
        try:
            new_level = _as_risk_level(level)
        except ValueError:
            valid = ", ".join(r.value for r in RiskLevel)
            return {"success": False, "error": f"Invalid risk level: {level}. Valid: {valid}"}

        previous, self._risk_level = self._risk_level, new_level
        logger.info("[BOT] Risk level: %s -> %s", previous.value, new_level.value)
        return {"success": True, "risk_level": new_level.value, "previous": previous.value}

    # === Scheduler API ===

    def transition(self, status: BotStatus, generation: int, expected: Optional[BotStatus] = None) -> bool:
        """Move to `status` if `generation` is current (and status is `expected`, when given)."""
        if generation != self._generation:
            return False
        if expected is not None and self._status != expected:
            return False
        self._set_status(status)
        return True

    def fail(self, message: str, generation: int) -> bool:
        """Enter ERROR on behalf of a cycle started in `generation`."""
        if generation != self._generation or self._status == BotStatus.INACTIVE:
            logger.info("[BOT] Ignoring failure from stale cycle: %s", message)
            return False
        self.last_error = message
        self._set_status(BotStatus.ERROR)
        if self.halt_on_error:
            self._halt_task = asyncio.create_task(self._shutdown_inputs())
        return True

    # === Internals ===

    async def _shutdown_inputs(self):
        await self.scheduler.disarm()
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        await self.feed.disconnect()

    def _set_status(self, status: BotStatus):
        if status == self._status:
            return
        previous, self._status = self._status, status
        log = logger.error if status == BotStatus.ERROR else logger.info
        log("[BOT] Status: %s -> %s", previous.value, status.value)
        for cb in self._callbacks:
            try:
                cb(status)
            except Exception as e:
                logger.warning("[BOT] Callback error: %s", e)

    def _on_tick(self, tick: Tick):
        update = self.aggregator.on_tick(tick)
        if update is None:
            return
        if update.is_new and self.journal is not None:
            completed = self.aggregator.recent_bars(2)
            if len(completed) == 2:
                self.journal.log_bar(completed[0].to_dict())
        self.bus.emit_bar(update)

    def _on_bar(self, update: BarUpdate):
        if update.is_new:
            self.scheduler.trigger()
