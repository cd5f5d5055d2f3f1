"""
Technical indicators used by the stochastic trend strategy.

`compute_indicators()` adds the slow stochastic %D, the ADX and the
simple moving average of the close to a bar frame.  Every series is
NaN until enough bars have been observed.  `IndicatorFacade` exposes
the last two values of each series at a given bar position and
reports warm‑up as `None` rather than as a number.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional
import numpy as np
import pandas as pd

from ..config.schema import StrategyConfig


def sma(values: pd.Series, period: int) -> pd.Series:
    """Simple moving average, NaN until `period` values are available."""
    return values.rolling(window=period, min_periods=period).mean()


def stochastic_d(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int,
    k_smoothing: int = 3,
    d_smoothing: int = 3,
) -> pd.Series:
    """Slow stochastic %D in the range [0, 100].

    %K = 100 * (close − lowest low) / (highest high − lowest low) over
    `period` bars, smoothed by `k_smoothing`; %D is the `d_smoothing`
    average of the smoothed %K.  A window with no range counts as 50.
    """
    lowest_low = low.rolling(window=period, min_periods=period).min()
    highest_high = high.rolling(window=period, min_periods=period).max()
    range_hl = highest_high - lowest_low

    fast_k = 100.0 * (close - lowest_low) / range_hl.replace(0, np.nan)
    fast_k = fast_k.where(range_hl != 0, 50.0)
    slow_k = sma(fast_k, k_smoothing)
    return sma(slow_k, d_smoothing)


def adx(high: pd.Series, low: pd.Series, close: pd.Series, period: int) -> pd.Series:
    """Average Directional Index with Wilder smoothing."""
    tr1 = high - low
    tr2 = (high - close.shift(1)).abs()
    tr3 = (low - close.shift(1)).abs()
    tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)

    up_move = high - high.shift(1)
    down_move = low.shift(1) - low
    plus_dm = pd.Series(
        np.where((up_move > down_move) & (up_move > 0), up_move, 0.0), index=high.index
    )
    minus_dm = pd.Series(
        np.where((down_move > up_move) & (down_move > 0), down_move, 0.0), index=high.index
    )

    alpha = 1.0 / period
    atr = tr.ewm(alpha=alpha, adjust=False, min_periods=period).mean()
    plus_di = 100.0 * plus_dm.ewm(alpha=alpha, adjust=False, min_periods=period).mean() / atr.replace(0, np.nan)
    minus_di = 100.0 * minus_dm.ewm(alpha=alpha, adjust=False, min_periods=period).mean() / atr.replace(0, np.nan)

    di_sum = plus_di + minus_di
    dx = 100.0 * (plus_di - minus_di).abs() / di_sum.replace(0, np.nan)
    dx = dx.where(di_sum != 0, 0.0)
    return dx.ewm(alpha=alpha, adjust=False, min_periods=period).mean()


def compute_indicators(df: pd.DataFrame, params: StrategyConfig) -> pd.DataFrame:
    """Return a copy of `df` with `stoch_d`, `adx` and `sma` columns added."""
    out = df.copy()
    out["stoch_d"] = stochastic_d(
        out["high"],
        out["low"],
        out["close"],
        params.stochastic_period,
        params.stochastic_k_smoothing,
        params.stochastic_d_smoothing,
    )
    out["adx"] = adx(out["high"], out["low"], out["close"], params.adx_period)
    out["sma"] = sma(out["close"], params.sma_period)
    return out


@dataclass(frozen=True)
class IndicatorValues:
    """Indicator readings for the current bar (`*_now`) and the previous one (`*_prev`)."""
    d_now: float
    d_prev: float
    adx_now: float
    sma_now: float
    sma_prev: float


class IndicatorFacade:
    """Random access to warmed‑up indicator values of a computed frame."""

    def __init__(self, frame: pd.DataFrame) -> None:
        missing = [c for c in ("stoch_d", "adx", "sma") if c not in frame.columns]
        if missing:
            raise ValueError(f"Indicator columns missing: {missing}")
        self._d = frame["stoch_d"].to_numpy(dtype=float)
        self._adx = frame["adx"].to_numpy(dtype=float)
        self._sma = frame["sma"].to_numpy(dtype=float)

    def __len__(self) -> int:
        return len(self._d)

    def snapshot(self, position: int) -> Optional[IndicatorValues]:
        """Values at bar `position`, or `None` while any of them is still warming up."""
        if position < 1 or position >= len(self._d):
            return None
        values = IndicatorValues(
            d_now=float(self._d[position]),
            d_prev=float(self._d[position - 1]),
            adx_now=float(self._adx[position]),
            sma_now=float(self._sma[position]),
            sma_prev=float(self._sma[position - 1]),
        )
        if any(math.isnan(v) for v in (values.d_now, values.d_prev, values.adx_now,
                                       values.sma_now, values.sma_prev)):
            return None
        return values
