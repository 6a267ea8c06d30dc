"""
Decision cycle scheduler.

Fires one cycle shortly after arming and then on a fixed period. Every
firing is its own task; an overlapping firing is turned away by the status
check at cycle entry rather than by pausing the timer, so at most one
reasoning request is outstanding at a time.

A cycle remembers the controller generation it started in. When the
reasoning call returns, the result is applied only if that generation is
still current, so a stop (or stop/start) during the call discards it.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Set

from core.bar_aggregator import BarAggregator
from core.config import (
    DECISION_PERIOD_SECONDS,
    INITIAL_CYCLE_DELAY_SECONDS,
    RECENT_BARS_FOR_PROMPT,
    SMA_LONG_PERIOD,
)
from core.logging_utils import get_logger
from core.models import BotStatus, DecisionRejected, parse_decision
from core.portfolio import PortfolioLedger
from logic.indicators import indicator_snapshot
from logic.reasoner import DecisionRequest, Reasoner

if TYPE_CHECKING:
    from core.bot_controller import BotController

logger = get_logger(__name__)


class CycleOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED_BUSY = "skipped_busy"
    SKIPPED_NO_DATA = "skipped_no_data"
    REJECTED = "rejected"
    FAILED = "failed"
    DISCARDED = "discarded"


class DecisionCycleScheduler:
    """Drives periodic and event-triggered decision cycles."""

    def __init__(
        self,
        controller: "BotController",
        aggregator: BarAggregator,
        ledger: PortfolioLedger,
        reasoner: Reasoner,
        period: float = DECISION_PERIOD_SECONDS,
        initial_delay: float = INITIAL_CYCLE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.controller = controller
        self.aggregator = aggregator
        self.ledger = ledger
        self.reasoner = reasoner
        self.period = period
        self.initial_delay = initial_delay
        self._sleep = sleep
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

        self.firings = 0
        self.last_outcome: Optional[CycleOutcome] = None

    @property
    def is_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def arm(self):
        if self.is_armed:
            return
        self._timer = asyncio.create_task(self._timer_loop(), name="decision-cycle-timer")
        logger.info("[CYCLE] Armed: first cycle in %.1fs, then every %.0fs", self.initial_delay, self.period)

    async def disarm(self):
        """Stop the timer. Cycles already in flight finish on their own."""
        timer, self._timer = self._timer, None
        if timer is None or timer.done():
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass
        logger.info("[CYCLE] Disarmed")

    def trigger(self) -> Optional[asyncio.Task]:
        """Event-triggered cycle (e.g. a new bar opened)."""
        if not self.is_armed:
            return None
        return self._spawn()

    async def wait_idle(self):
        """Wait for every in-flight cycle to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _timer_loop(self):
        await self._sleep(self.initial_delay)
        while True:
            self._spawn()
            await self._sleep(self.period)

    def _spawn(self) -> asyncio.Task:
        self.firings += 1
        task = asyncio.create_task(self.run_cycle())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def build_request(self) -> DecisionRequest:
        bars = self.aggregator.bars()
        state = self.ledger.state
        return DecisionRequest(
            risk_level=self.controller.risk_level,
            cash=state.cash,
            asset_amount=state.asset_amount,
            asset_name=self.ledger.asset_name,
            recent_bars=bars[-RECENT_BARS_FOR_PROMPT:],
            indicators=indicator_snapshot([b.close for b in bars]),
        )

    async def run_cycle(self) -> CycleOutcome:
        outcome = await self._run_cycle()
        self.last_outcome = outcome
        return outcome

    async def _run_cycle(self) -> CycleOutcome:
        ctrl = self.controller
        if ctrl.status != BotStatus.RUNNING:
            logger.info("[CYCLE] Skipped, bot is %s", ctrl.status.value)
            return CycleOutcome.SKIPPED_BUSY

        bar_count = len(self.aggregator)
        if self.aggregator.last_price is None or bar_count < SMA_LONG_PERIOD:
            logger.info("[CYCLE] Not enough data yet (%d/%d bars)", bar_count, SMA_LONG_PERIOD)
            return CycleOutcome.SKIPPED_NO_DATA

        request = self.build_request()
        generation = ctrl.generation
        ctrl.transition(BotStatus.THINKING, generation)
        logger.info(
            "[CYCLE] Requesting decision (close=%.2f, risk=%s)",
            request.last_close, request.risk_level.value,
        )

        try:
            payload = await self.reasoner.decide(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("[CYCLE] Reasoning service failed")
            ctrl.fail(f"reasoning service failed: {e}", generation)
            return CycleOutcome.FAILED

        parsed = parse_decision(payload)
        if isinstance(parsed, DecisionRejected):
            logger.error("[CYCLE] Rejected decision (%s): %r", parsed.reason, payload)
            ctrl.fail(str(parsed), generation)
            return CycleOutcome.REJECTED

        if generation != ctrl.generation or ctrl.status != BotStatus.THINKING:
            logger.info(
                "[CYCLE] Discarding %s decision, bot moved on (now %s)",
                parsed.action.value, ctrl.status.value,
            )
            return CycleOutcome.DISCARDED

        # Apply against the state as it is now, not as it was when we asked
        price = self.aggregator.last_price or request.last_close
        self.ledger.apply(parsed, price)
        self.ledger.record_decision(parsed)
        logger.info(
            "[CYCLE] %s (fraction=%.2f): %s",
            parsed.action.value, parsed.trade_fraction, parsed.reasoning,
        )
        ctrl.transition(BotStatus.RUNNING, generation, expected=BotStatus.THINKING)
        return CycleOutcome.APPLIED
