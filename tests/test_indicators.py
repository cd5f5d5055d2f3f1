import math
import os
import sys

import numpy as np
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from src.config.schema import StrategyConfig
from src.strategy.indicators import IndicatorFacade, adx, compute_indicators, sma, stochastic_d

import unittest


def make_frame(n: int = 120) -> pd.DataFrame:
    idx = pd.date_range("2024-01-01 18:00", periods=n, freq="30min", tz="Europe/Brussels")
    close = pd.Series(1.10 + 0.002 * np.sin(np.arange(n) / 6.0) + 0.00005 * np.arange(n), index=idx)
    return pd.DataFrame(
        {"open": close.shift(1).fillna(close.iloc[0]), "high": close + 0.0004, "low": close - 0.0004, "close": close}
    )


class TestIndicators(unittest.TestCase):
    def test_sma_warms_up_then_averages(self) -> None:
        values = pd.Series([1.0, 2.0, 3.0, 4.0])
        out = sma(values, 3)
        self.assertTrue(math.isnan(out.iloc[1]))
        self.assertAlmostEqual(out.iloc[2], 2.0)
        self.assertAlmostEqual(out.iloc[3], 3.0)

    def test_stochastic_is_bounded(self) -> None:
        df = make_frame()
        d = stochastic_d(df["high"], df["low"], df["close"], 14)
        valid = d.dropna()
        self.assertTrue(math.isnan(d.iloc[14]))
        self.assertFalse(math.isnan(d.iloc[17]))
        self.assertTrue(((valid >= 0) & (valid <= 100)).all())

    def test_flat_prices_give_neutral_stochastic(self) -> None:
        idx = pd.date_range("2024-01-01", periods=20, freq="30min")
        flat = pd.Series(1.1, index=idx)
        d = stochastic_d(flat, flat, flat, 5)
        self.assertAlmostEqual(d.iloc[-1], 50.0)

    def test_adx_warm_up_and_range(self) -> None:
        df = make_frame()
        out = adx(df["high"], df["low"], df["close"], 14)
        self.assertTrue(out.iloc[:14].isna().all())
        valid = out.dropna()
        self.assertGreater(len(valid), 50)
        self.assertTrue(((valid >= 0) & (valid <= 100)).all())


class TestIndicatorFacade(unittest.TestCase):
    def test_snapshot_is_none_until_warm(self) -> None:
        params = StrategyConfig(stochastic_period=10, adx_period=5, sma_period=20)
        frame = compute_indicators(make_frame(), params)
        facade = IndicatorFacade(frame)

        self.assertIsNone(facade.snapshot(0))
        self.assertIsNone(facade.snapshot(5))
        self.assertIsNone(facade.snapshot(len(frame)))

        snap = facade.snapshot(len(frame) - 1)
        self.assertIsNotNone(snap)
        self.assertAlmostEqual(snap.d_now, frame["stoch_d"].iloc[-1])
        self.assertAlmostEqual(snap.d_prev, frame["stoch_d"].iloc[-2])
        self.assertAlmostEqual(snap.sma_prev, frame["sma"].iloc[-2])

    def test_missing_columns_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            IndicatorFacade(make_frame())


if __name__ == '__main__':
    unittest.main()
