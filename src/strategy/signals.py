"""
Stochastic %D band crossing signals.
"""

from __future__ import annotations

from typing import Optional

from ..execution.models import PositionSide


def crossed_above(d_prev: float, d_now: float, level: float) -> bool:
    """Upward crossing; a previous value sitting on the level has not crossed yet."""
    return d_prev <= level and d_now > level


def crossed_below(d_prev: float, d_now: float, level: float) -> bool:
    return d_prev >= level and d_now < level


def detect_signal(
    long_eligible: bool,
    short_eligible: bool,
    d_prev: float,
    d_now: float,
    buy_level: float,
    sell_level: float,
) -> Optional[PositionSide]:
    """Return the side to enter on this bar, if any.

    The long condition is tested first, so it wins if both hold.
    """
    if long_eligible and crossed_above(d_prev, d_now, buy_level):
        return PositionSide.LONG
    if short_eligible and crossed_below(d_prev, d_now, sell_level):
        return PositionSide.SHORT
    return None
