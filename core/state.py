"""Read-only view of the bot for dashboards.

A BotSnapshot is assembled by the controller on demand; nothing in it is
shared with the live components.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from core.models import BarView, BotStatus, DecisionLogEntry, FeedMode, IndicatorSnapshot, RiskLevel, Trade
from core.portfolio import PortfolioState


@dataclass(frozen=True)
class BotSnapshot:
    status: BotStatus
    risk_level: RiskLevel
    feed_mode: Optional[FeedMode]
    asset_name: str
    current_price: Optional[float]
    portfolio: PortfolioState
    portfolio_value: float
    profit_loss: float
    profit_loss_pct: float
    bars: tuple[BarView, ...] = ()
    indicators: IndicatorSnapshot = field(default_factory=IndicatorSnapshot)
    trades: tuple[Trade, ...] = ()
    decisions: tuple[DecisionLogEntry, ...] = ()
    trade_count: int = 0
    last_error: Optional[str] = None
    generation: int = 0
    stale_ticks_dropped: int = 0
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_running(self) -> bool:
        return self.status.is_running

    @property
    def can_change_risk(self) -> bool:
        return not self.status.is_running
