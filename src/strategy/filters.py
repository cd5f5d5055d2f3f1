"""
Entry filters.

Every function here is a pure predicate evaluated fresh on each bar.
`evaluate_filters()` combines them into the independent gates the
signal detector consumes.  Missing information (short history,
indicators still warming up) closes the corresponding gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Mapping, Optional

from ..config.schema import Config
from ..data.bars import Bar, BarHistory
from ..utils.timeutils import to_timezone
from .indicators import IndicatorValues


def day_allowed(day_of_week: int, enabled: Mapping[int, bool]) -> bool:
    """False only if `day_of_week` (Monday == 0) carries an explicit disabled flag."""
    return enabled.get(day_of_week, True)


def time_allowed(t: time, start: time, end: time) -> bool:
    """Inclusive session window check; `start > end` wraps past midnight."""
    if start <= end:
        return start <= t <= end
    return t >= start or t <= end


def volatility_allowed(bars: BarHistory, lookback: int, min_range: float) -> bool:
    """True iff the high/low range of the last `lookback` bars exceeds `min_range`."""
    highest = bars.highest_high(lookback)
    lowest = bars.lowest_low(lookback)
    if highest is None or lowest is None:
        return False
    return (highest - lowest) > min_range


def trend_strength_allowed(adx_now: float, min_adx: float) -> bool:
    return adx_now >= min_adx


def trend_direction_bullish(sma_now: float, sma_prev: float) -> bool:
    return sma_now > sma_prev


def trend_direction_bearish(sma_now: float, sma_prev: float) -> bool:
    return sma_now < sma_prev


@dataclass(frozen=True)
class FilterGates:
    """Outcome of all entry filters for one bar."""
    day: bool = False
    time: bool = False
    volatility: bool = False
    strength_long: bool = False
    strength_short: bool = False
    bullish: bool = False
    bearish: bool = False

    @property
    def common(self) -> bool:
        return self.day and self.time and self.volatility

    def long_eligible(self, flat: bool) -> bool:
        return self.common and flat and self.strength_long and self.bullish

    def short_eligible(self, flat: bool) -> bool:
        return self.common and flat and self.strength_short and self.bearish


def evaluate_filters(
    config: Config,
    bar: Bar,
    history: BarHistory,
    indicators: Optional[IndicatorValues],
) -> FilterGates:
    """Evaluate every filter for `bar`, whose timestamp is read in `config.data.timezone`."""
    local_ts = to_timezone(bar.timestamp, config.data.timezone)
    params = config.strategy

    day_ok = day_allowed(local_ts.weekday(), config.days.as_weekday_map())
    time_ok = time_allowed(local_ts.time(), config.session.start_time, config.session.end_time)
    volatility_ok = volatility_allowed(history, params.range_lookback, params.min_range)

    if indicators is None:
        return FilterGates(day=day_ok, time=time_ok, volatility=volatility_ok)

    return FilterGates(
        day=day_ok,
        time=time_ok,
        volatility=volatility_ok,
        strength_long=trend_strength_allowed(indicators.adx_now, params.min_adx_long),
        strength_short=trend_strength_allowed(indicators.adx_now, params.min_adx_short),
        bullish=trend_direction_bullish(indicators.sma_now, indicators.sma_prev),
        bearish=trend_direction_bearish(indicators.sma_now, indicators.sma_prev),
    )
