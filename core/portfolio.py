"""Simulated cash/asset ledger with bounded trade and decision logs."""

import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, Optional

from core.config import ASSET_NAME, INITIAL_CASH, LOG_CAPACITY, MIN_TRADE_CASH
from core.logging_utils import get_logger
from core.models import Decision, DecisionLogEntry, Trade, TradingAction, utc_now
from core.models.trade import new_record_id

logger = get_logger(__name__)


@dataclass(frozen=True)
class PortfolioState:
    cash: float
    asset_amount: float


class PortfolioLedger:
    """Single owner of the paper balances.

    Balances live in one immutable PortfolioState that is swapped whole on
    every trade, so a reader sees either the old or the new pair.
    """

    def __init__(
        self,
        initial_cash: float = INITIAL_CASH,
        initial_asset: float = 0.0,
        asset_name: str = ASSET_NAME,
        min_trade_cash: float = MIN_TRADE_CASH,
        log_capacity: int = LOG_CAPACITY,
        clock: Callable[[], datetime] = utc_now,
        journal=None,
    ):
        if initial_cash < 0 or initial_asset < 0:
            raise ValueError("starting balances must be >= 0")
        self.initial_cash = initial_cash
        self.asset_name = asset_name
        self.min_trade_cash = min_trade_cash
        self._clock = clock
        self._journal = journal
        self._state = PortfolioState(cash=initial_cash, asset_amount=initial_asset)
        # Newest first; appendleft + maxlen drops the oldest entry
        self._trades: Deque[Trade] = deque(maxlen=log_capacity)
        self._decisions: Deque[DecisionLogEntry] = deque(maxlen=log_capacity)
        self.trade_count = 0

    # === Read side ===

    @property
    def state(self) -> PortfolioState:
        return self._state

    @property
    def cash(self) -> float:
        return self._state.cash

    @property
    def asset_amount(self) -> float:
        return self._state.asset_amount

    @property
    def trades(self) -> tuple[Trade, ...]:
        return tuple(self._trades)

    @property
    def decisions(self) -> tuple[DecisionLogEntry, ...]:
        return tuple(self._decisions)

    def portfolio_value(self, price: Optional[float]) -> float:
        state = self._state
        if price:
            return state.cash + state.asset_amount * price
        return state.cash

    def profit_loss(self, price: Optional[float]) -> float:
        return self.portfolio_value(price) - self.initial_cash

    def profit_loss_pct(self, price: Optional[float]) -> float:
        if not self.initial_cash:
            return 0.0
        return self.profit_loss(price) / self.initial_cash * 100

    # === Write side ===

    def apply(self, decision: Decision, price: float) -> Optional[Trade]:
        """Execute a validated decision at `price`.

        Returns the Trade, or None for HOLD and for skipped trades (dust cash,
        nothing to sell, non-positive size).
        """
        if not math.isfinite(price) or price <= 0:
            raise ValueError(f"trade price must be positive, got {price!r}")

        state = self._state
        fraction = decision.trade_fraction

        if decision.action == TradingAction.BUY:
            if state.cash <= self.min_trade_cash:
                logger.info("[LEDGER] BUY skipped, cash %.2f below minimum %.2f", state.cash, self.min_trade_cash)
                return None
            spend = state.cash * fraction
            if spend <= 0:
                return None
            amount = spend / price
            new_state = PortfolioState(
                cash=max(state.cash - spend, 0.0),
                asset_amount=state.asset_amount + amount,
            )
        elif decision.action == TradingAction.SELL:
            if state.asset_amount <= 0:
                logger.info("[LEDGER] SELL skipped, no %s held", self.asset_name)
                return None
            amount = state.asset_amount * fraction
            if amount <= 0:
                return None
            new_state = PortfolioState(
                cash=state.cash + amount * price,
                asset_amount=max(state.asset_amount - amount, 0.0),
            )
        else:
            return None

        trade = Trade(
            id=new_record_id("trade"),
            at=self._clock(),
            action=decision.action,
            asset=self.asset_name,
            amount=amount,
            price=price,
        )
        self._state = new_state
        self._trades.appendleft(trade)
        self.trade_count += 1

        logger.info(
            "[LEDGER] %s %.6f %s @ %.2f | cash=%.2f %s=%.6f",
            trade.action.value, amount, self.asset_name, price,
            new_state.cash, self.asset_name, new_state.asset_amount,
        )
        if self._journal is not None:
            self._journal.log_trade(trade.to_dict())
        return trade

    def record_decision(self, decision: Decision) -> DecisionLogEntry:
        entry = DecisionLogEntry(
            id=new_record_id("logic"),
            at=self._clock(),
            reasoning=decision.reasoning,
            decision=decision.action,
        )
        self._decisions.appendleft(entry)
        if self._journal is not None:
            record = entry.to_dict()
            record["trade_fraction"] = decision.trade_fraction
            self._journal.log_decision(record)
        return entry
