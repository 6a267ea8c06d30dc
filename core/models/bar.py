"""Tick and bar primitives."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Tick:
    """Single timestamped price observation from the feed."""
    price: float
    observed_at: datetime


@dataclass
class Bar:
    """Fixed-width OHLC bar. Mutated only while it is the newest bar."""
    bucket_start: datetime
    open: float
    high: float
    low: float
    close: float

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def is_green(self) -> bool:
        return self.close >= self.open

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    def to_dict(self) -> dict:
        return {
            "ts": self.bucket_start.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }


@dataclass(frozen=True)
class BarUpdate:
    """Result of feeding one tick to the aggregator."""
    bar: Bar
    is_new: bool


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicators for one point of the bar history; None until enough data."""
    sma_short: Optional[float] = None
    sma_long: Optional[float] = None
    rsi: Optional[float] = None


@dataclass(frozen=True)
class BarView:
    """A bar together with the indicators computed up to and including it."""
    bar: Bar
    indicators: IndicatorSnapshot
