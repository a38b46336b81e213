"""Entry zone calculation: pure math, no I/O.

Three zone shapes, chosen by the calling strategy:
    pullback:   band around an anchor (usually EMA21), wider on the
                confirmation side (below for long, above for short).
    breakout:   band just beyond a swing level in the trade direction.
    aggressive: tight band around the current price for strategies that
                chase rather than wait.
"""

import math
from dataclasses import dataclass

from forgesignal.strategy.models import Direction

PULLBACK_BUFFER = 0.004
SWING_BUFFER = 0.01
MICRO_BUFFER = 0.005
BREAKOUT_NEAR = 0.0005
BREAKOUT_FAR = 0.002
AGGRESSIVE_NEAR = 0.0002
AGGRESSIVE_FAR = 0.0008

PRICE_DECIMALS = 8


@dataclass(frozen=True)
class EntryZone:
    min: float
    max: float
    kind: str  # "pullback", "breakout" or "aggressive"

    @property
    def mid(self) -> float:
        return round((self.min + self.max) / 2.0, PRICE_DECIMALS)

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}


def _check(price: float, direction: Direction, name: str) -> None:
    if direction not in (Direction.LONG, Direction.SHORT):
        raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")
    if price is None or not math.isfinite(price) or price <= 0:
        raise ValueError(f"{name} must be a positive finite price, got {price}")


def _zone(low: float, high: float, kind: str) -> EntryZone:
    return EntryZone(
        min=round(low, PRICE_DECIMALS), max=round(high, PRICE_DECIMALS), kind=kind,
    )


def pullback_zone(
    anchor: float,
    direction: Direction,
    buffer: float = PULLBACK_BUFFER,
) -> EntryZone:
    """Band around *anchor*: full buffer on the far side, half on the near side.

    Long:  ``[anchor * (1 - buffer), anchor * (1 + buffer / 2)]``.
    Short: ``[anchor * (1 - buffer / 2), anchor * (1 + buffer)]``.
    """
    _check(anchor, direction, "anchor")
    if direction is Direction.LONG:
        return _zone(anchor * (1 - buffer), anchor * (1 + buffer * 0.5), "pullback")
    return _zone(anchor * (1 - buffer * 0.5), anchor * (1 + buffer), "pullback")


def breakout_zone(
    level: float,
    direction: Direction,
    near: float = BREAKOUT_NEAR,
    far: float = BREAKOUT_FAR,
) -> EntryZone:
    """Band from *near* to *far* past *level* in the trade direction."""
    _check(level, direction, "level")
    if direction is Direction.LONG:
        return _zone(level * (1 + near), level * (1 + far), "breakout")
    return _zone(level * (1 - far), level * (1 - near), "breakout")


def aggressive_zone(
    price: float,
    direction: Direction,
    near: float = AGGRESSIVE_NEAR,
    far: float = AGGRESSIVE_FAR,
) -> EntryZone:
    """A few basis points around *price*, wider on the confirmation side."""
    _check(price, direction, "price")
    if direction is Direction.LONG:
        return _zone(price * (1 - far), price * (1 + near), "aggressive")
    return _zone(price * (1 - near), price * (1 + far), "aggressive")
