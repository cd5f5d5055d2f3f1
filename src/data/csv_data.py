"""
CSV data loader.

This module provides a class to load historical OHLC data from CSV
files.  Two layouts are accepted.  The standard schema is:

```
time,open,high,low,close,tick_volume,spread
```

Only the `time`, `open`, `high`, `low` and `close` columns are
required.  The second layout is the tab‑separated MetaTrader 5 export
with `<DATE>`, `<TIME>`, `<OPEN>`, `<HIGH>`, `<LOW>` and `<CLOSE>`
columns.  Timestamps are localised to the configured timezone.
"""

from __future__ import annotations

import logging
from pathlib import Path
import pandas as pd

logger = logging.getLogger(__name__)

MT5_COLUMNS = ["<DATE>", "<TIME>", "<OPEN>", "<HIGH>", "<LOW>", "<CLOSE>"]


class CSVDataLoader:
    """Load OHLC data from CSV files for backtesting.

    Parameters
    ----------
    csv_dir : str
        Directory where the CSV files are located.  Each symbol’s file
        must be named `{SYMBOL}.csv`.
    timezone : str
        IANA timezone name used to localise timestamps.
    """

    def __init__(self, csv_dir: str, timezone: str) -> None:
        self.csv_dir = Path(csv_dir)
        self.timezone = timezone

    def load(self, symbol: str) -> pd.DataFrame:
        """Return a frame indexed by tz‑aware timestamps with `open/high/low/close`."""
        file_path = self.csv_dir / f"{symbol}.csv"
        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found for symbol {symbol}: {file_path}")

        with file_path.open("r", encoding="utf-8") as fh:
            header = fh.readline()

        if "<DATE>" in header:
            df = self._load_mt5(file_path, symbol)
        else:
            df = self._load_standard(file_path, symbol)

        df = df[~df.index.duplicated(keep="first")]
        logger.debug("Loaded %d bars for %s from %s", len(df), symbol, file_path)
        return df

    def _localise(self, index: pd.DatetimeIndex) -> pd.DatetimeIndex:
        if index.tz is None:
            return index.tz_localize(self.timezone)
        return index.tz_convert(self.timezone)

    def _load_standard(self, file_path: Path, symbol: str) -> pd.DataFrame:
        df = pd.read_csv(file_path)
        df.columns = [c.strip().lower() for c in df.columns]
        required = ["time", "open", "high", "low", "close"]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(
                f"Unrecognized CSV format for {symbol}. Missing columns: {missing}. "
                f"Found columns: {list(df.columns)}"
            )
        df["time"] = pd.to_datetime(df["time"], errors="raise")
        df = df.set_index("time").sort_index()
        df.index = self._localise(pd.DatetimeIndex(df.index))
        return df[["open", "high", "low", "close"]].astype(float)

    def _load_mt5(self, file_path: Path, symbol: str) -> pd.DataFrame:
        df = pd.read_csv(file_path, sep="\t", engine="python")
        df.columns = [c.strip() for c in df.columns]

        missing = [c for c in MT5_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(
                f"Unrecognized CSV format for {symbol}. Missing columns: {missing}. "
                f"Found columns: {list(df.columns)}"
            )

        dt = df["<DATE>"].astype(str).str.strip() + " " + df["<TIME>"].astype(str).str.strip()
        ts = pd.to_datetime(dt, format="%Y.%m.%d %H:%M:%S", errors="coerce")
        if ts.isna().any():
            # fallback if format differs
            ts = pd.to_datetime(dt, errors="coerce")
        if ts.isna().any():
            bad = dt[ts.isna()].head(5).tolist()
            raise ValueError(f"Could not parse MT5 DATE/TIME for {symbol}. Examples: {bad}")

        out = pd.DataFrame(
            {
                "open": df["<OPEN>"].astype(float).to_numpy(),
                "high": df["<HIGH>"].astype(float).to_numpy(),
                "low": df["<LOW>"].astype(float).to_numpy(),
                "close": df["<CLOSE>"].astype(float).to_numpy(),
            },
            index=pd.DatetimeIndex(ts),
        ).sort_index()

        # MT5 export timestamps are terminal local time; assume the configured timezone.
        out.index = self._localise(pd.DatetimeIndex(out.index))
        return out
