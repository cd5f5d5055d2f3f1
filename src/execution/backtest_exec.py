"""
Backtest execution engine.

This module contains `SimulatedBroker`, an execution service that
fills the strategy's orders against historical bars, and
`BacktestEngine`, which orchestrates loading historical data,
computing indicators, iterating over bars, forwarding fills to the
strategy and recording performance.

Per bar the engine:

1. fills pending market orders at the bar open, then working stop and
   limit orders the bar trades through (stop before limit, a fill
   cancels its linked order);
2. runs the strategy on the bar;
3. closes any open position at the bar close if the bar is the last one
   at or before `session.close` or the last bar of the data set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple
import pandas as pd

from ..config.schema import Config
from ..data.bars import Bar, iter_bars
from ..data.csv_data import CSVDataLoader
from ..strategy.indicators import IndicatorFacade, compute_indicators
from ..strategy.stochastic_trend import StochasticTrendStrategy
from ..utils.timeutils import is_session_close
from .models import Order, OrderKind, OrderSide, Trade

logger = logging.getLogger(__name__)


@dataclass
class EquityPoint:
    """Represents the account equity at a given timestamp."""
    timestamp: pd.Timestamp
    equity: float


@dataclass
class _BrokerPosition:
    side: str  # 'long' or 'short'
    entry_price: float
    entry_time: pd.Timestamp


class SimulatedBroker:
    """Fill orders against bars, applying spread, slippage and commission.

    Parameters
    ----------
    config : Config
        Provides the instrument and cost settings.
    initial_equity : float
        Starting account equity.
    """

    def __init__(self, config: Config, initial_equity: float = 100_000.0) -> None:
        self.config = config
        self.equity = initial_equity
        self.fill_listener: Optional[Callable[[int], object]] = None
        self.pending_market: List[Order] = []
        self.working: Dict[int, Order] = {}
        self.position: Optional[_BrokerPosition] = None
        self.trades: List[Trade] = []
        self.equity_curve: List[EquityPoint] = []

    # Execution service interface

    def insert_order(self, order: Order) -> None:
        order = replace(order)
        if order.kind is OrderKind.MARKET:
            self.pending_market.append(order)
        else:
            self.working[order.order_id] = order

    def modify_order(self, order: Order) -> None:
        if order.order_id not in self.working:
            raise KeyError(f"Cannot modify unknown order {order.order_id}")
        working = self.working[order.order_id]
        working.price = order.price
        working.label = order.label

    def cancel_order(self, order: Order) -> None:
        if self.working.pop(order.order_id, None) is None:
            raise KeyError(f"Cannot cancel unknown order {order.order_id}")

    # Simulation

    def _execution_price(self, side: OrderSide, base_price: float) -> float:
        """Apply half the spread and the slippage against the trader."""
        adverse = self.config.costs.spread / 2 + self.config.costs.slippage
        return base_price + adverse if side is OrderSide.BUY else base_price - adverse

    def _trigger_price(self, order: Order, bar: Bar) -> Optional[float]:
        """Base fill price of a working order on `bar`, or `None` if untouched."""
        price = order.price
        buying = order.side is OrderSide.BUY
        if order.kind is OrderKind.STOP:
            if buying and bar.high >= price:
                return max(bar.open, price)
            if not buying and bar.low <= price:
                return min(bar.open, price)
        elif order.kind is OrderKind.LIMIT:
            if buying and bar.low <= price:
                return min(bar.open, price)
            if not buying and bar.high >= price:
                return max(bar.open, price)
        return None

    def fill_market_orders(self, base_price: float, ts: pd.Timestamp) -> None:
        """Fill every pending market order at `base_price`."""
        pending, self.pending_market = self.pending_market, []
        for order in pending:
            self._fill(order, base_price, ts)

    def process_bar(self, bar: Bar) -> None:
        """Fill pending market orders at the open, then any triggered stop or limit."""
        self.fill_market_orders(bar.open, bar.timestamp)

        ordered = sorted(
            self.working.values(),
            key=lambda o: (o.kind is not OrderKind.STOP, o.order_id),
        )
        for order in ordered:
            if order.order_id not in self.working:
                continue
            base_price = self._trigger_price(order, bar)
            if base_price is None:
                continue
            del self.working[order.order_id]
            if order.linked_order_id is not None:
                self.working.pop(order.linked_order_id, None)
            self._fill(order, base_price, bar.timestamp)

    def _fill(self, order: Order, base_price: float, ts: pd.Timestamp) -> None:
        price = self._execution_price(order.side, base_price)
        side = "long" if order.side is OrderSide.BUY else "short"

        if self.position is None:
            self.position = _BrokerPosition(side=side, entry_price=price, entry_time=ts)
            logger.debug("Filled %s at %.5f (%s)", order.label, price, ts)
        elif self.position.side == side:
            raise RuntimeError(
                f"Order {order.order_id} ({order.label}) would add to an open {side} position"
            )
        else:
            self._close(price, ts, order.label)

        if self.fill_listener is not None:
            self.fill_listener(order.order_id)

    def _close(self, exit_price: float, ts: pd.Timestamp, reason: str) -> None:
        position = self.position
        direction = 1 if position.side == "long" else -1
        volume = 1.0
        pnl = (exit_price - position.entry_price) * direction * volume * self.config.instrument.contract_size
        fees = 2 * self.config.costs.commission_per_contract * volume
        self.equity += pnl - fees
        trade = Trade(
            symbol=self.config.instrument.symbol,
            side=position.side,
            volume=volume,
            entry_price=position.entry_price,
            exit_price=exit_price,
            entry_time=position.entry_time,
            exit_time=ts,
            pnl=pnl,
            fees=fees,
            reason=reason,
        )
        self.trades.append(trade)
        self.equity_curve.append(EquityPoint(timestamp=ts, equity=self.equity))
        self.position = None
        logger.info(
            "Closed %s %.5f -> %.5f pnl %.2f (%s)",
            trade.side, trade.entry_price, trade.exit_price, trade.pnl, reason,
        )


class BacktestEngine:
    """Run the strategy over historical data loaded from a CSV file."""

    def __init__(self, config: Config, data: Optional[pd.DataFrame] = None) -> None:
        self.config = config
        self.data = data
        self.data_loader = CSVDataLoader(config.data.csv_dir, config.data.timezone)

    def run(self) -> Tuple[List[Trade], List[EquityPoint]]:
        """Execute the backtest.

        Returns
        -------
        trades : list of Trade
            Completed trades including P&L and fees.
        equity_curve : list of EquityPoint
            Equity after each trade for metrics.
        """
        symbol = self.config.instrument.symbol
        df = self.data if self.data is not None else self.data_loader.load(symbol)
        broker = SimulatedBroker(self.config, self.config.initial_equity)
        strategy = StochasticTrendStrategy(self.config, broker)
        broker.fill_listener = strategy.on_order_filled

        if df.empty:
            logger.warning("No bars available for %s", symbol)
            return broker.trades, broker.equity_curve

        frame = compute_indicators(df, self.config.strategy)
        indicators = IndicatorFacade(frame)
        bars = list(iter_bars(frame, self.config.instrument.tick_size))
        tz = self.config.data.timezone
        close = self.config.session.close_time

        for idx, bar in enumerate(bars):
            broker.process_bar(bar)
            strategy.on_bar(bar, indicators.snapshot(idx))

            next_ts = bars[idx + 1].timestamp if idx + 1 < len(bars) else None
            if is_session_close(bar.timestamp, next_ts, close, tz):
                strategy.force_flatten()
                broker.fill_market_orders(bar.close, bar.timestamp)

        logger.info("Backtest of %s finished: %d trades over %d bars", symbol, len(broker.trades), len(bars))
        return broker.trades, broker.equity_curve
