"""
Bar records and bounded look‑back history.

The strategy never indexes raw arrays.  It reads past bars through
`BarHistory.history(n_back)`, where ``0`` is the current bar and ``1``
the previous one, and gets `None` back while not enough bars have been
observed.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, Optional
import pandas as pd


@dataclass(frozen=True)
class Bar:
    """One OHLC bar of the traded instrument."""
    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    tick_size: float


def iter_bars(df: pd.DataFrame, tick_size: float) -> Iterator[Bar]:
    """Yield `Bar` records from a frame indexed by timestamp with OHLC columns."""
    for ts, row in zip(df.index, df[["open", "high", "low", "close"]].itertuples(index=False)):
        yield Bar(
            timestamp=ts,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            tick_size=tick_size,
        )


class BarHistory:
    """Most‑recent‑first view over the last `maxlen` bars.

    Parameters
    ----------
    maxlen : int
        Number of bars retained.  Must cover the longest look‑back the
        caller needs.
    """

    def __init__(self, maxlen: int) -> None:
        if maxlen <= 0:
            raise ValueError(f"maxlen must be positive, got {maxlen}")
        self._bars: Deque[Bar] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._bars)

    def append(self, bar: Bar) -> Optional[Bar]:
        """Add `bar` as the current bar and return the bar it evicted, if any."""
        if self._bars and bar.timestamp <= self._bars[-1].timestamp:
            raise ValueError(
                f"Bars must arrive in increasing timestamp order: {bar.timestamp} after {self._bars[-1].timestamp}"
            )
        evicted = self._bars[0] if len(self._bars) == self._bars.maxlen else None
        self._bars.append(bar)
        return evicted

    def discard_latest(self, evicted: Optional[Bar] = None) -> Bar:
        """Undo the last `append`, putting back the bar it evicted."""
        bar = self._bars.pop()
        if evicted is not None:
            self._bars.appendleft(evicted)
        return bar

    def history(self, n_back: int) -> Optional[Bar]:
        """Return the bar `n_back` bars ago, or `None` if it is not available."""
        if n_back < 0 or n_back >= len(self._bars):
            return None
        return self._bars[-1 - n_back]

    @property
    def current(self) -> Optional[Bar]:
        return self.history(0)

    def highest_high(self, lookback: int) -> Optional[float]:
        """Highest high of the last `lookback` bars, or `None` with too little history."""
        if lookback <= 0 or lookback > len(self._bars):
            return None
        return max(self._bars[-1 - i].high for i in range(lookback))

    def lowest_low(self, lookback: int) -> Optional[float]:
        """Lowest low of the last `lookback` bars, or `None` with too little history."""
        if lookback <= 0 or lookback > len(self._bars):
            return None
        return min(self._bars[-1 - i].low for i in range(lookback))
