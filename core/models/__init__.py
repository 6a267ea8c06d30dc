"""Typed data models for the trading bot."""

from core.models.bar import Bar, BarUpdate, BarView, IndicatorSnapshot, Tick, utc_now
from core.models.decision import (
    Decision,
    DecisionRejected,
    ParsedDecision,
    RiskLevel,
    TradingAction,
    parse_decision,
)
from core.models.status import BotStatus, FeedMode
from core.models.trade import DecisionLogEntry, Trade

__all__ = [
    "Bar",
    "BarUpdate",
    "BarView",
    "BotStatus",
    "Decision",
    "DecisionLogEntry",
    "DecisionRejected",
    "FeedMode",
    "IndicatorSnapshot",
    "ParsedDecision",
    "RiskLevel",
    "Tick",
    "Trade",
    "TradingAction",
    "parse_decision",
    "utc_now",
]
