"""Stop-loss and take-profit calculation: pure math, no I/O.

Structure-anchored approach:
    SL sits a small buffer beyond the first available swing extreme on the
    stop side, walking a strategy-specific timeframe preference.
    TP levels are risk multiples (R) of the entry-to-stop distance.

Fallback:
    With no usable swing level, SL is a fixed percentage from entry.
"""

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from forgesignal.risk.entry_zone import PRICE_DECIMALS
from forgesignal.strategy.models import Direction, StrategyKind, SwingStructure

STOP_BUFFER = 0.003
FALLBACK_STOP_PCT = 0.03

STOP_PREFERENCES: dict[StrategyKind, tuple[str, ...]] = {
    StrategyKind.SWING: ("3d", "1d", "4h"),
    StrategyKind.TREND_PRIMARY: ("4h", "1d"),
    StrategyKind.TREND_RIDER: ("1h", "4h", "1d"),
    StrategyKind.SCALP: ("5m", "15m", "1h", "4h"),
    StrategyKind.MICRO_SCALP: ("5m", "15m", "1h"),
    StrategyKind.AGGRO_SCALP: ("15m", "1h"),
    StrategyKind.AGGRO_MICRO_SCALP: ("3m", "1m", "5m", "15m"),
}

RISK_MULTIPLES: dict[StrategyKind, tuple[float, ...]] = {
    StrategyKind.SWING: (3.0, 4.0, 5.0),
    StrategyKind.TREND_PRIMARY: (1.0, 2.0),
    StrategyKind.TREND_RIDER: (2.0, 3.5),
    StrategyKind.SCALP: (1.5, 3.0),
    StrategyKind.MICRO_SCALP: (1.0, 1.5),
    StrategyKind.AGGRO_SCALP: (1.5, 3.0),
    StrategyKind.AGGRO_MICRO_SCALP: (1.0, 1.5),
}


@dataclass(frozen=True)
class StopTargets:
    """Computed stop, invalidation and targets for a trade."""

    stop_loss: float
    invalidation_level: float
    targets: tuple[float, ...]
    risk_amount: float
    risk_reward: dict[str, float]
    stop_source: str  # timeframe key or "fallback"


def _pick_level(
    structures: Mapping[str, SwingStructure],
    direction: Direction,
    preference: Sequence[str],
    beyond: float,
) -> Optional[tuple[str, float]]:
    for timeframe in preference:
        structure = structures.get(timeframe)
        if structure is None:
            continue
        level = structure.swing_low if direction is Direction.LONG else structure.swing_high
        if level is None or not math.isfinite(level) or level <= 0:
            continue
        if direction is Direction.LONG and level < beyond:
            return timeframe, level
        if direction is Direction.SHORT and level > beyond:
            return timeframe, level
    return None


def calculate_stop_targets(
    entry_mid: float,
    direction: Direction,
    structures: Mapping[str, SwingStructure],
    risk_multiples: Sequence[float],
    preference: Sequence[str],
    *,
    beyond: Optional[float] = None,
    buffer: float = STOP_BUFFER,
    fallback_pct: float = FALLBACK_STOP_PCT,
) -> Optional[StopTargets]:
    """Derive stop-loss, invalidation level and R-multiple targets.

    Args:
        entry_mid: Midpoint of the entry zone.
        direction: ``Direction.LONG`` or ``Direction.SHORT``.
        structures: Timeframe key -> swing structure.
        risk_multiples: Target multiples of the risk amount, ascending.
        preference: Timeframes to search for a swing level, in order.
        beyond: A level only qualifies when it is strictly below this price
            for long (above for short).  Defaults to *entry_mid*; strategies
            pass the far edge of their entry zone.
        buffer: Fraction placed beyond the swing level (default 0.3 %).
        fallback_pct: Stop distance when no level qualifies (default 3 %).

    Returns:
        ``StopTargets``, or ``None`` when the risk amount is zero or
        non-finite, or the stop lands on the wrong side of entry.
    """
    if direction not in (Direction.LONG, Direction.SHORT):
        raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")
    if not risk_multiples:
        raise ValueError("risk_multiples must not be empty")
    if entry_mid is None or not math.isfinite(entry_mid) or entry_mid <= 0:
        return None

    limit = entry_mid if beyond is None else beyond
    picked = _pick_level(structures, direction, preference, limit)
    sign = 1.0 if direction is Direction.LONG else -1.0

    if picked is not None:
        source, level = picked
        stop = level * (1 - sign * buffer)
        invalidation = level
    else:
        source = "fallback"
        stop = entry_mid * (1 - sign * fallback_pct)
        invalidation = stop

    stop = round(stop, PRICE_DECIMALS)
    invalidation = round(invalidation, PRICE_DECIMALS)
    risk = abs(entry_mid - stop)
    if not math.isfinite(risk) or risk <= 0:
        return None
    if sign * (entry_mid - stop) <= 0:
        return None

    targets = tuple(
        round(entry_mid + sign * risk * multiple, PRICE_DECIMALS)
        for multiple in risk_multiples
    )
    if not all(math.isfinite(t) and t > 0 for t in targets):
        return None

    return StopTargets(
        stop_loss=stop,
        invalidation_level=invalidation,
        targets=targets,
        risk_amount=round(risk, PRICE_DECIMALS),
        risk_reward={
            f"tp{i}RR": float(multiple)
            for i, multiple in enumerate(risk_multiples, start=1)
        },
        stop_source=source,
    )
