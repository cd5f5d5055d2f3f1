"""
Accelerating trailing stop.

Each time the close makes a new favourable extreme, the acceleration
factor is multiplied by the distance between that extreme and the
current stop, and the stop is moved by the resulting step.  If the
step would put the stop at or beyond the market, the position is
closed at market instead.  The trailing state is only updated once
the stop modification has been sent.

The multiplicative update makes the step path dependent: it shrinks
quickly when the distance is below one price unit and grows when it
is above.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..execution.models import PositionSide
from ..execution.position_manager import PositionManager

logger = logging.getLogger(__name__)

TRAIL = "trail"
FLATTEN = "flatten"


def update_trailing_stop(manager: PositionManager, close: float) -> Optional[str]:
    """Apply one bar of trailing logic to the open position.

    Parameters
    ----------
    manager : PositionManager
        Manager holding an open position.
    close : float
        Close of the current bar.

    Returns
    -------
    str or None
        ``"trail"`` if the stop was moved, ``"flatten"`` if the position
        was closed, `None` if the close did not make a new extreme.
    """
    position = manager.position
    if position is None:
        return None

    trailing = position.trailing
    stop_price = position.stop.price

    if position.side is PositionSide.LONG:
        if close <= trailing.furthest_close:
            return None
        acceleration = trailing.acceleration * (close - stop_price)
        new_stop = stop_price + acceleration
        crosses = new_stop >= close
        label = "Trailing stop long exit"
    else:
        if close >= trailing.furthest_close:
            return None
        acceleration = trailing.acceleration * abs(stop_price - close)
        new_stop = stop_price - acceleration
        crosses = new_stop <= close
        label = "Trailing stop short exit"

    if not crosses:
        manager.modify_stop(new_stop, label)
        trailing.furthest_close = close
        trailing.acceleration = acceleration
        return TRAIL

    logger.info(
        "Trailing step %.5f from stop %.5f would cross close %.5f; flattening",
        acceleration, stop_price, close,
    )
    manager.exit(position.side.exit_side)
    return FLATTEN
