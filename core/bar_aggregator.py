"""Tick -> fixed-width OHLC bar aggregation.

History is a sliding window: ticks update the newest bar while they fall in
its bucket, a later bucket opens a new bar and the oldest bar drops off once
the window is full. Bars handed out are copies, so a caller never keeps a
reference into the live window.
"""

import math
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Deque, Optional

from core.config import BAR_WIDTH_SECONDS, MAX_BAR_HISTORY
from core.logging_utils import get_logger
from core.models import Bar, BarUpdate, Tick

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)


def bucket_start(ts: datetime, width_seconds: float) -> datetime:
    """Truncate `ts` to the start of its bar bucket.

    Works in integer microseconds so a tick exactly on a boundary always opens
    the new bucket.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    width_us = int(round(width_seconds * 1_000_000))
    ts_us = (ts - _EPOCH) // _ONE_MICROSECOND
    return _EPOCH + timedelta(microseconds=ts_us - ts_us % width_us)


class BarAggregator:
    """Owns the bar history for one instrument."""

    def __init__(self, bar_width: float = BAR_WIDTH_SECONDS, max_bars: int = MAX_BAR_HISTORY):
        if bar_width <= 0:
            raise ValueError("bar_width must be positive")
        if max_bars < 1:
            raise ValueError("max_bars must be >= 1")
        self.bar_width = bar_width
        self.max_bars = max_bars
        self._bars: Deque[Bar] = deque(maxlen=max_bars)
        self.stale_ticks_dropped = 0

    def on_tick(self, tick: Tick) -> Optional[BarUpdate]:
        """Fold one tick into the history.

        Returns the touched bar (copy) and whether it was newly opened, or None
        when the tick belongs to a bucket older than the newest bar.
        """
        price = tick.price
        if not math.isfinite(price) or price <= 0:
            raise ValueError(f"tick price must be a positive number, got {price!r}")

        bucket = bucket_start(tick.observed_at, self.bar_width)
        last = self._bars[-1] if self._bars else None

        if last is not None and bucket == last.bucket_start:
            last.high = max(last.high, price)
            last.low = min(last.low, price)
            last.close = price
            return BarUpdate(bar=replace(last), is_new=False)

        if last is not None and bucket < last.bucket_start:
            self.stale_ticks_dropped += 1
            logger.debug(
                "[BARS] Dropped out-of-order tick %.2f @ %s (newest bucket %s)",
                price, tick.observed_at.isoformat(), last.bucket_start.isoformat(),
            )
            return None

        bar = Bar(bucket_start=bucket, open=price, high=price, low=price, close=price)
        # deque(maxlen) evicts the oldest bar on overflow
        self._bars.append(bar)
        return BarUpdate(bar=replace(bar), is_new=True)

    def bars(self) -> tuple[Bar, ...]:
        return tuple(replace(b) for b in self._bars)

    def recent_bars(self, count: int) -> tuple[Bar, ...]:
        if count <= 0:
            return ()
        return tuple(replace(b) for b in list(self._bars)[-count:])

    def closes(self) -> list[float]:
        return [b.close for b in self._bars]

    @property
    def latest_bar(self) -> Optional[Bar]:
        return replace(self._bars[-1]) if self._bars else None

    @property
    def last_price(self) -> Optional[float]:
        return self._bars[-1].close if self._bars else None

    def reset(self):
        self._bars.clear()
        self.stale_ticks_dropped = 0

    def __len__(self) -> int:
        return len(self._bars)
