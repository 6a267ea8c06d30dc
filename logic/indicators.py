"""Technical indicators over a close-price sequence.

Pure functions: the same input always yields the same float, so a recorded
tick stream can be replayed and compared exactly.
"""

from typing import Optional, Sequence

import numpy as np

from core.config import RSI_PERIOD, SMA_LONG_PERIOD, SMA_SHORT_PERIOD
from core.models import IndicatorSnapshot


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


def sma(prices: Sequence[float], period: int) -> Optional[float]:
    """Mean of the last `period` prices, or None with fewer than `period` values."""
    _check_period(period)
    if len(prices) < period:
        return None
    window = np.asarray(prices, dtype=np.float64)[-period:]
    return float(np.mean(window))


def rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> Optional[float]:
    """Relative strength index over the last `period` changes.

    Needs `period + 1` prices. Zero average loss is reported as 100.
    """
    _check_period(period)
    if len(prices) < period + 1:
        return None

    closes = np.asarray(prices, dtype=np.float64)[-(period + 1):]
    deltas = np.diff(closes)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(np.sum(gains)) / period
    avg_loss = float(np.sum(losses)) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def indicator_snapshot(closes: Sequence[float]) -> IndicatorSnapshot:
    """Indicators for the newest point of `closes`."""
    return IndicatorSnapshot(
        sma_short=sma(closes, SMA_SHORT_PERIOD),
        sma_long=sma(closes, SMA_LONG_PERIOD),
        rsi=rsi(closes, RSI_PERIOD),
    )


def indicator_series(closes: Sequence[float]) -> list[IndicatorSnapshot]:
    """Snapshot for every prefix of `closes` (one per bar, for charting)."""
    closes = list(closes)
    return [indicator_snapshot(closes[: i + 1]) for i in range(len(closes))]
