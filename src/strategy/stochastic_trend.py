"""
Stochastic trend‑following strategy.

On every bar the strategy evaluates its entry filters (day of week,
session window, volatility range, ADX strength and SMA direction).
While flat it enters long when the stochastic %D crosses above the
buy level, or short when it crosses below the sell level.  Each entry
comes with a linked catastrophic stop and profit target.  While a
position is open the stop is trailed with an accelerating step, and
the position is closed at market when the step would cross the price.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config.schema import Config, validate_config
from ..data.bars import Bar, BarHistory
from ..execution.models import OpenPosition
from ..execution.position_manager import ExecutionService, PositionManager
from .filters import evaluate_filters
from .indicators import IndicatorValues
from .signals import detect_signal
from .trailing import update_trailing_stop

logger = logging.getLogger(__name__)


class StochasticTrendStrategy:
    """Per‑bar decision engine for a single instrument and one contract."""

    def __init__(self, config: Config, executor: ExecutionService) -> None:
        self.config = validate_config(config)
        self.manager = PositionManager(executor)
        self.history = BarHistory(maxlen=config.strategy.range_lookback + 1)

    @property
    def position(self) -> Optional[OpenPosition]:
        return self.manager.position

    def on_bar(self, bar: Bar, indicators: Optional[IndicatorValues]) -> Optional[str]:
        """Process one bar to completion.

        If an execution request fails the bar is taken back out of the
        history before the error propagates, so the same bar can be
        processed again.

        Parameters
        ----------
        bar : Bar
            The newest bar; bars must arrive in increasing time order.
        indicators : IndicatorValues or None
            Indicator readings for this bar, `None` while warming up.

        Returns
        -------
        str or None
            ``'long'`` or ``'short'`` on entry, ``'trail'`` or
            ``'flatten'`` from the trailing stop, otherwise `None`.
        """
        evicted = self.history.append(bar)
        try:
            return self._decide(bar, indicators)
        except Exception:
            self.history.discard_latest(evicted)
            raise

    def _decide(self, bar: Bar, indicators: Optional[IndicatorValues]) -> Optional[str]:
        params = self.config.strategy
        flat = self.manager.is_flat

        gates = evaluate_filters(self.config, bar, self.history, indicators)

        if flat:
            if indicators is None:
                return None
            side = detect_signal(
                gates.long_eligible(flat),
                gates.short_eligible(flat),
                indicators.d_prev,
                indicators.d_now,
                params.buy_level,
                params.sell_level,
            )
            if side is None:
                return None
            logger.debug(
                "%s signal at %s: %%D %.2f -> %.2f", side.value, bar.timestamp, indicators.d_prev, indicators.d_now
            )
            self.manager.enter(
                side,
                bar.close,
                bar.tick_size,
                params.stop_ticks,
                params.profit_ticks,
                params.stop_acceleration,
                entry_time=bar.timestamp,
            )
            return side.value

        return update_trailing_stop(self.manager, bar.close)

    def on_order_filled(self, order_id: int) -> bool:
        """Forward a fill notification from the execution service."""
        return self.manager.on_order_filled(order_id)

    def force_flatten(self) -> bool:
        """Close any open position at session end.  Returns `True` if one was closed."""
        return self.manager.flatten("Session end exit") is not None
