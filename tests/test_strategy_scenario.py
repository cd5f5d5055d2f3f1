import os
import sys
from dataclasses import replace

import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from src.config.schema import Config, ConfigError, StrategyConfig
from src.data.bars import Bar
from src.execution.models import OrderKind, OrderSide, PositionSide
from src.strategy.indicators import IndicatorValues
from src.strategy.stochastic_trend import StochasticTrendStrategy

import unittest

TZ = "Europe/Brussels"
BULLISH = dict(adx_now=20.0, sma_now=1.1010, sma_prev=1.1000)


class RecordingExecutor:
    def __init__(self) -> None:
        self.calls = []

    def insert_order(self, order) -> None:
        self.calls.append(("insert", replace(order)))

    def modify_order(self, order) -> None:
        self.calls.append(("modify", replace(order)))

    def cancel_order(self, order) -> None:
        self.calls.append(("cancel", replace(order)))


class FlakyExecutor(RecordingExecutor):
    """Rejects the next `failures` insert requests, then records as usual."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    def insert_order(self, order) -> None:
        if self.failures:
            self.failures -= 1
            raise ConnectionError("broker unavailable")
        super().insert_order(order)


def make_bars(start: str, count: int = 10, base: float = 1.1000, step: float = 0.0002):
    ts = pd.Timestamp(start, tz=TZ)
    bars = []
    for i in range(count):
        close = base + i * step
        bars.append(Bar(ts + pd.Timedelta(minutes=30 * i), close, close + 0.0005, close - 0.0005, close, 0.0001))
    return bars


class TestStrategyScenario(unittest.TestCase):
    def setUp(self) -> None:
        self.cfg = Config(
            strategy=StrategyConfig(
                buy_level=51.0,
                sell_level=49.0,
                stop_ticks=24,
                profit_ticks=77,
                stop_acceleration=0.2,
                range_lookback=10,
                min_range=0.002,
            )
        )
        self.executor = RecordingExecutor()
        self.strategy = StochasticTrendStrategy(self.cfg, self.executor)

    def warm_up(self, bars):
        # Monday 2024-01-01, inside the default 18:00-06:00 window
        for bar in bars[:-1]:
            self.assertIsNone(self.strategy.on_bar(bar, None))
        self.assertEqual(self.executor.calls, [])

    def test_crossing_up_enters_long_with_linked_exits(self) -> None:
        bars = make_bars("2024-01-01 18:00")
        self.warm_up(bars)
        result = self.strategy.on_bar(bars[-1], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH))

        self.assertEqual(result, "long")
        self.assertEqual([c[0] for c in self.executor.calls], ["insert"] * 3)
        entry, stop, target = (c[1] for c in self.executor.calls)
        close = bars[-1].close
        self.assertEqual((entry.kind, entry.side), (OrderKind.MARKET, OrderSide.BUY))
        self.assertEqual((stop.kind, stop.side), (OrderKind.STOP, OrderSide.SELL))
        self.assertEqual((target.kind, target.side), (OrderKind.LIMIT, OrderSide.SELL))
        self.assertAlmostEqual(stop.price, close - 0.0024)
        self.assertAlmostEqual(target.price, close + 0.0077)
        self.assertEqual(stop.linked_order_id, target.order_id)
        self.assertEqual(target.linked_order_id, stop.order_id)
        self.assertEqual(self.strategy.position.side, PositionSide.LONG)
        self.assertAlmostEqual(self.strategy.position.trailing.furthest_close, close)
        self.assertAlmostEqual(self.strategy.position.trailing.acceleration, 0.2)

    def test_crossing_down_enters_short(self) -> None:
        bars = make_bars("2024-01-01 18:00")
        self.warm_up(bars)
        values = IndicatorValues(d_now=48.0, d_prev=50.0, adx_now=20.0, sma_now=1.0990, sma_prev=1.1000)
        self.assertEqual(self.strategy.on_bar(bars[-1], values), "short")
        self.assertEqual(self.executor.calls[0][1].side, OrderSide.SELL)
        self.assertAlmostEqual(self.executor.calls[1][1].price, bars[-1].close + 0.0024)

    def test_no_crossing_issues_no_orders(self) -> None:
        bars = make_bars("2024-01-01 18:00")
        self.warm_up(bars)
        self.assertIsNone(self.strategy.on_bar(bars[-1], IndicatorValues(d_now=50.5, d_prev=50.0, **BULLISH)))
        self.assertEqual(self.executor.calls, [])
        self.assertIsNone(self.strategy.position)

    def test_previous_value_on_the_level_needs_current_above(self) -> None:
        bars = make_bars("2024-01-01 18:00", count=11)
        self.warm_up(bars[:-1])
        self.assertIsNone(self.strategy.on_bar(bars[-2], IndicatorValues(d_now=51.0, d_prev=51.0, **BULLISH)))
        self.assertEqual(self.executor.calls, [])
        self.assertEqual(self.strategy.on_bar(bars[-1], IndicatorValues(d_now=51.5, d_prev=51.0, **BULLISH)), "long")

    def test_disabled_day_blocks_entry(self) -> None:
        bars = make_bars("2024-01-03 18:00")  # Wednesday
        self.warm_up(bars)
        self.assertIsNone(self.strategy.on_bar(bars[-1], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH)))
        self.assertEqual(self.executor.calls, [])

    def test_outside_session_blocks_entry(self) -> None:
        bars = make_bars("2024-01-01 08:00")
        self.warm_up(bars)
        self.assertIsNone(self.strategy.on_bar(bars[-1], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH)))
        self.assertEqual(self.executor.calls, [])

    def test_low_volatility_blocks_entry(self) -> None:
        bars = make_bars("2024-01-01 18:00", step=0.0)  # range of 0.0010
        self.warm_up(bars)
        self.assertIsNone(self.strategy.on_bar(bars[-1], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH)))
        self.assertEqual(self.executor.calls, [])

    def test_open_position_trails_instead_of_reentering(self) -> None:
        bars = make_bars("2024-01-01 18:00", count=12)
        self.warm_up(bars[:10])
        self.strategy.on_bar(bars[9], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH))
        self.executor.calls.clear()

        result = self.strategy.on_bar(bars[10], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH))
        self.assertEqual(result, "trail")
        self.assertEqual([c[0] for c in self.executor.calls], ["modify"])

    def test_new_trade_after_stop_fill_resets_trailing_state(self) -> None:
        bars = make_bars("2024-01-01 18:00", count=13)
        self.warm_up(bars[:10])
        self.strategy.on_bar(bars[9], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH))
        self.strategy.on_bar(bars[10], None)
        self.assertNotAlmostEqual(self.strategy.position.trailing.acceleration, 0.2)

        stop_id = self.strategy.position.stop.order_id
        self.assertTrue(self.strategy.on_order_filled(stop_id))
        self.assertIsNone(self.strategy.position)

        self.strategy.on_bar(bars[11], IndicatorValues(d_now=50.0, d_prev=49.0, **BULLISH))
        self.assertEqual(self.strategy.on_bar(bars[12], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH)), "long")
        self.assertEqual(self.strategy.position.trailing.acceleration, 0.2)
        self.assertEqual(self.strategy.position.trailing.furthest_close, bars[12].close)

    def test_force_flatten_closes_open_position(self) -> None:
        bars = make_bars("2024-01-01 18:00")
        self.warm_up(bars)
        self.strategy.on_bar(bars[-1], IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH))
        self.executor.calls.clear()

        self.assertTrue(self.strategy.force_flatten())
        self.assertEqual([c[0] for c in self.executor.calls], ["cancel", "cancel", "insert"])
        self.assertEqual(self.executor.calls[-1][1].label, "Session end exit")
        self.assertFalse(self.strategy.force_flatten())

    def test_failed_entry_can_be_retried_on_the_same_bar(self) -> None:
        executor = FlakyExecutor(failures=0)
        strategy = StochasticTrendStrategy(self.cfg, executor)
        bars = make_bars("2024-01-01 18:00")
        for bar in bars[:-1]:
            strategy.on_bar(bar, None)
        values = IndicatorValues(d_now=52.0, d_prev=50.0, **BULLISH)

        executor.failures = 1
        with self.assertRaises(ConnectionError):
            strategy.on_bar(bars[-1], values)
        self.assertIsNone(strategy.position)
        self.assertEqual(len(strategy.history), len(bars) - 1)
        self.assertEqual(strategy.history.current, bars[-2])

        self.assertEqual(strategy.on_bar(bars[-1], values), "long")
        self.assertEqual([c[0] for c in executor.calls], ["insert"] * 3)
        self.assertEqual(strategy.history.current, bars[-1])

    def test_invalid_configuration_is_rejected(self) -> None:
        cfg = replace(self.cfg, strategy=replace(self.cfg.strategy, buy_level=49.0, sell_level=51.0))
        with self.assertRaises(ConfigError):
            StochasticTrendStrategy(cfg, RecordingExecutor())


if __name__ == '__main__':
    unittest.main()
