"""
Timezone and trading day utilities.

This module centralises all timezone handling.  The strategy uses
these helpers to express bar timestamps in the configured timezone
before applying the day and session filters, and the backtest uses
them to decide when a trading session closes and open positions must
be flattened.
"""

from __future__ import annotations

from datetime import date, time, timedelta
from typing import Optional
import pandas as pd


def parse_time_str(ts: str) -> time:
    """Parse a `HH:MM` string into a `datetime.time` object.

    Parameters
    ----------
    ts : str
        A string in 24‑hour format such as ``"06:30"``.

    Returns
    -------
    datetime.time
        The corresponding time.

    Raises
    ------
    ValueError
        If the string is not two integers separated by a colon or the
        values are out of range.
    """
    hour, minute = map(int, ts.split(":"))
    return time(hour=hour, minute=minute)


def to_timezone(ts: pd.Timestamp, tz_name: str) -> pd.Timestamp:
    """Convert a `pandas.Timestamp` to the specified timezone.

    If the timestamp is naive, it is assumed to be in UTC before
    conversion.  If it already has a timezone, it will be converted.
    """
    if not isinstance(ts, pd.Timestamp):
        ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert(tz_name)


def session_date(ts: pd.Timestamp, close: time, tz_name: str) -> date:
    """Return the date of the session close that `ts` belongs to.

    A bar at or before `close` belongs to that day's session; a later
    bar belongs to the session closing on the following day.
    """
    local_ts = to_timezone(ts, tz_name)
    if local_ts.time() <= close:
        return local_ts.date()
    return local_ts.date() + timedelta(days=1)


def is_session_close(
    ts: pd.Timestamp,
    next_ts: Optional[pd.Timestamp],
    close: time,
    tz_name: str,
) -> bool:
    """Return `True` if the bar at `ts` is the last one of its session.

    That is the last bar at or before `close`.  The last bar of the
    data set (`next_ts` is `None`) also closes the session so that no
    position survives the end of a backtest.
    """
    if next_ts is None:
        return True
    return session_date(ts, close, tz_name) != session_date(next_ts, close, tz_name)
