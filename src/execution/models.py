"""
Order, position and trade models.

These dataclasses represent the objects passed between the strategy,
the position manager and the execution engines.  Keeping them in a
separate module improves readability and makes unit testing easier.

A flat book is represented by the absence of an `OpenPosition`.  An
open position owns the linked stop/target pair and the trailing state
of the trade that created it, so nothing trade specific outlives the
position.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import pandas as pd


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderKind(str, Enum):
    MARKET = "market"
    STOP = "stop"
    LIMIT = "limit"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def direction(self) -> int:
        """`1` for long, `-1` for short."""
        return 1 if self is PositionSide.LONG else -1

    @property
    def entry_side(self) -> OrderSide:
        return OrderSide.BUY if self is PositionSide.LONG else OrderSide.SELL

    @property
    def exit_side(self) -> OrderSide:
        return self.entry_side.opposite


@dataclass
class Order:
    """An order request for one contract.

    `linked_order_id` names the counterpart of a one‑cancels‑other pair.
    It is only an identifier: the execution service is responsible for
    cancelling the counterpart when this order fills.
    """
    order_id: int
    side: OrderSide
    kind: OrderKind
    label: str
    price: Optional[float] = None  # required for stop and limit orders
    quantity: int = 1
    linked_order_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind is OrderKind.MARKET and self.price is not None:
            raise ValueError("Market orders do not carry a price")
        if self.kind is not OrderKind.MARKET and self.price is None:
            raise ValueError(f"{self.kind.value} orders require a price")


@dataclass
class TrailingState:
    """Per‑trade trailing stop state, created fresh on every entry."""
    acceleration: float
    furthest_close: float


@dataclass
class OpenPosition:
    """A one contract position together with its protective orders."""
    side: PositionSide
    entry_order_id: int
    stop: Order
    target: Order
    trailing: TrailingState
    entry_time: Optional[pd.Timestamp] = None


@dataclass
class Trade:
    """Represents a completed trade."""
    symbol: str
    side: str  # 'long' or 'short'
    volume: float
    entry_price: float
    exit_price: float
    entry_time: pd.Timestamp
    exit_time: pd.Timestamp
    pnl: float
    fees: float
    reason: str  # label of the order that closed the position
