"""
Position and order lifecycle management.

`PositionManager` is the only place where the position of the strategy
changes.  It owns at most one `OpenPosition` and, with it, the linked
stop/target pair and the trailing state of the trade.  Every change is
also sent to an execution service as insert, modify or cancel
requests, in an order the execution side can rely on:

- entry: market entry, stop exit, limit exit
- exit: cancel stop, cancel target, closing market order
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from typing import Optional, Protocol

import pandas as pd

from .models import (
    OpenPosition,
    Order,
    OrderKind,
    OrderSide,
    PositionSide,
    TrailingState,
)

logger = logging.getLogger(__name__)


class PositionStateError(RuntimeError):
    """Raised when an operation is invoked in a position state that forbids it."""


class ExecutionService(Protocol):
    """Receives order requests.  Linked orders must be cancelled on fill by the implementation."""

    def insert_order(self, order: Order) -> None:
        ...

    def modify_order(self, order: Order) -> None:
        ...

    def cancel_order(self, order: Order) -> None:
        ...


class PositionManager:
    """Owns the single position slot and its protective orders."""

    def __init__(self, executor: ExecutionService) -> None:
        self.executor = executor
        self.position: Optional[OpenPosition] = None
        self._ids = itertools.count(1)

    @property
    def is_flat(self) -> bool:
        return self.position is None

    def _require_open(self, operation: str) -> OpenPosition:
        if self.position is None:
            raise PositionStateError(f"Cannot {operation} while flat")
        return self.position

    def enter(
        self,
        side: PositionSide,
        current_close: float,
        tick_size: float,
        stop_ticks: int,
        profit_ticks: int,
        base_acceleration: float,
        entry_time: Optional[pd.Timestamp] = None,
    ) -> OpenPosition:
        """Open a one contract position with a linked stop and profit target.

        The stop is placed `stop_ticks` against the position and the
        target `profit_ticks` in its favour, both measured from
        `current_close`.

        Raises
        ------
        PositionStateError
            If a position is already open.
        """
        if self.position is not None:
            raise PositionStateError(
                f"Cannot enter {side.value}: a {self.position.side.value} position is already open"
            )

        stop_distance = stop_ticks * tick_size
        profit_distance = profit_ticks * tick_size
        stop_price = current_close - side.direction * stop_distance
        target_price = current_close + side.direction * profit_distance

        entry = Order(
            order_id=next(self._ids),
            side=side.entry_side,
            kind=OrderKind.MARKET,
            label=f"Enter {side.value} position",
        )
        stop_id = next(self._ids)
        target_id = next(self._ids)
        stop = Order(
            order_id=stop_id,
            side=side.exit_side,
            kind=OrderKind.STOP,
            price=stop_price,
            label=f"Catastrophic stop {side.value} exit",
            linked_order_id=target_id,
        )
        target = Order(
            order_id=target_id,
            side=side.exit_side,
            kind=OrderKind.LIMIT,
            price=target_price,
            label=f"Profit target {side.value} exit",
            linked_order_id=stop_id,
        )

        self.executor.insert_order(entry)
        self.executor.insert_order(stop)
        self.executor.insert_order(target)

        self.position = OpenPosition(
            side=side,
            entry_order_id=entry.order_id,
            stop=stop,
            target=target,
            trailing=TrailingState(acceleration=base_acceleration, furthest_close=current_close),
            entry_time=entry_time,
        )
        logger.info(
            "Entered %s at close %.5f (stop %.5f, target %.5f)",
            side.value, current_close, stop_price, target_price,
        )
        return self.position

    def exit(self, side_to_close: OrderSide, label: Optional[str] = None) -> Order:
        """Cancel the protective pair and close the position at market.

        Raises
        ------
        PositionStateError
            If flat, or if `side_to_close` would not close the open position.
        """
        position = self._require_open("exit")
        if side_to_close is not position.side.exit_side:
            raise PositionStateError(
                f"A {side_to_close.value} order cannot close a {position.side.value} position"
            )

        closing = Order(
            order_id=next(self._ids),
            side=side_to_close,
            kind=OrderKind.MARKET,
            label=label or f"Exit {position.side.value} position",
        )
        self.executor.cancel_order(position.stop)
        self.executor.cancel_order(position.target)
        self.executor.insert_order(closing)

        self.position = None
        logger.info("Closed %s position at market (%s)", position.side.value, closing.label)
        return closing

    def flatten(self, label: Optional[str] = None) -> Optional[Order]:
        """Close any open position; a no‑op when already flat."""
        if self.position is None:
            return None
        return self.exit(self.position.side.exit_side, label)

    def modify_stop(self, new_price: float, new_label: str) -> Order:
        """Move the stop of the open position; the target is left untouched.

        The stop kept by the position changes only once the execution
        service has accepted the request.
        """
        position = self._require_open("modify the stop")
        moved = replace(position.stop, price=new_price, label=new_label)
        self.executor.modify_order(moved)
        position.stop = moved
        logger.debug("Stop moved to %.5f (%s)", new_price, new_label)
        return position.stop

    def on_order_filled(self, order_id: int) -> bool:
        """Record a fill reported by the execution service.

        A fill of the stop or the target closes the position.  Returns
        `True` when the fill changed the position state.
        """
        position = self.position
        if position is None:
            return False
        if order_id in (position.stop.order_id, position.target.order_id):
            which = "stop" if order_id == position.stop.order_id else "target"
            logger.info("%s position closed by %s fill", position.side.value.capitalize(), which)
            self.position = None
            return True
        return False
