"""Composable predicates over timeframe snapshots.

Every predicate is total: missing timeframes, missing fields and
non-finite numbers evaluate to ``False`` rather than raising.
"""

import math
from typing import Optional

from forgesignal.strategy.models import (
    Direction,
    HTFBias,
    MarketSnapshot,
    Oscillator,
    OscillatorCondition,
    PRIMARY_TIMEFRAME,
    Pullback,
    SECONDARY_TIMEFRAME,
    TERTIARY_TIMEFRAME,
    TimeframeSnapshot,
    Trend,
)
from forgesignal.strategy.thresholds import ModeThresholds

_SUPPORTIVE = {
    Direction.LONG: (OscillatorCondition.BULLISH, OscillatorCondition.OVERSOLD),
    Direction.SHORT: (OscillatorCondition.BEARISH, OscillatorCondition.OVERBOUGHT),
}
_OPPOSING = {
    Direction.LONG: (OscillatorCondition.BEARISH, OscillatorCondition.OVERBOUGHT),
    Direction.SHORT: (OscillatorCondition.BULLISH, OscillatorCondition.OVERSOLD),
}


def is_finite(*values: Optional[float]) -> bool:
    return all(v is not None and math.isfinite(v) for v in values)


def is_finite_positive(*values: Optional[float]) -> bool:
    return all(v is not None and math.isfinite(v) and v > 0 for v in values)


def trend_direction(trend: Trend) -> Optional[Direction]:
    if trend is Trend.UP:
        return Direction.LONG
    if trend is Trend.DOWN:
        return Direction.SHORT
    return None


def trend_of(snapshot: MarketSnapshot, timeframe: str) -> Trend:
    """Trend of *timeframe*; a missing timeframe reads as flat."""
    tf = snapshot.get(timeframe)
    return tf.trend if tf is not None else Trend.FLAT


# ── Single-timeframe predicates ──────────────────────────────────────────


def is_aligned(tf: Optional[TimeframeSnapshot], direction: Direction) -> bool:
    return tf is not None and trend_direction(tf.trend) is direction


def is_opposed(tf: Optional[TimeframeSnapshot], direction: Direction) -> bool:
    return tf is not None and trend_direction(tf.trend) is direction.opposite


def is_trending(tf: Optional[TimeframeSnapshot]) -> bool:
    return tf is not None and tf.trend is not Trend.FLAT


def pullback_in(tf: Optional[TimeframeSnapshot], *states: Pullback) -> bool:
    return tf is not None and tf.pullback_state in states


def is_retracing(tf: Optional[TimeframeSnapshot]) -> bool:
    """Pullback is entry-zone or retracing."""
    return pullback_in(tf, Pullback.ENTRY_ZONE, Pullback.RETRACING)


def within_ema(tf: Optional[TimeframeSnapshot], max_pct: float) -> bool:
    """Absolute distance from EMA21 is at most *max_pct* percent."""
    if tf is None or not is_finite(tf.distance_from_ema21_pct):
        return False
    return abs(tf.distance_from_ema21_pct) <= max_pct


def momentum_supports(osc: Oscillator, direction: Direction, strict: bool) -> bool:
    """Oscillator backs *direction*.

    Strict: condition must be supportive (bullish/oversold for long).
    Loose: any condition that is not opposing.
    """
    if strict:
        return osc.condition in _SUPPORTIVE.get(direction, ())
    return direction in _OPPOSING and osc.condition not in _OPPOSING[direction]


def momentum_opposes(osc: Oscillator, direction: Direction) -> bool:
    return osc.condition in _OPPOSING.get(direction, ())


def is_exhausted(osc: Oscillator, direction: Direction) -> bool:
    """Overbought while long, oversold while short."""
    if direction is Direction.LONG:
        return osc.condition is OscillatorCondition.OVERBOUGHT
    if direction is Direction.SHORT:
        return osc.condition is OscillatorCondition.OVERSOLD
    return False


def is_deep_pullback_momentum(osc: Oscillator, direction: Direction) -> bool:
    """Oversold or strongly bullish for long; mirrored for short.

    Long: oversold, or k < 25, or bullish with k < 40.
    Short: overbought, or k > 75, or bearish with k > 60.
    """
    k = osc.k if is_finite(osc.k) else None
    if direction is Direction.LONG:
        if osc.condition is OscillatorCondition.OVERSOLD:
            return True
        if k is None:
            return False
        return k < 25 or (osc.condition is OscillatorCondition.BULLISH and k < 40)
    if osc.condition is OscillatorCondition.OVERBOUGHT:
        return True
    if k is None:
        return False
    return k > 75 or (osc.condition is OscillatorCondition.BEARISH and k > 60)


def k_within(osc: Oscillator, direction: Direction, limit: float) -> bool:
    """Long: k < limit.  Short: k > 100 - limit."""
    if not is_finite(osc.k):
        return False
    if direction is Direction.LONG:
        return osc.k < limit
    return osc.k > 100.0 - limit


# ── HTF bias override ────────────────────────────────────────────────────


def primary_is_flat(snapshot: MarketSnapshot) -> bool:
    return trend_of(snapshot, PRIMARY_TIMEFRAME) is Trend.FLAT


def check_bias_override(
    snapshot: MarketSnapshot,
    bias: HTFBias,
    thresholds: ModeThresholds,
) -> tuple[bool, list[str]]:
    """Decide whether HTF bias may stand in for a flat primary timeframe.

    Returns:
        ``(passed, notes)``.  *notes* explains each condition that passed,
        or the first that failed.

    Rules:
        - Bias is directional with confidence >= ``min_htf_bias_confidence``.
        - Secondary (1h) and tertiary (15m) trends agree with the bias.
        - Secondary oscillator k < ``override_momentum_max`` for long,
          > 100 - ``override_momentum_max`` for short.
    """
    notes: list[str] = []
    if bias.is_neutral:
        return False, ["HTF bias is neutral"]
    if bias.confidence < thresholds.min_htf_bias_confidence:
        return False, [
            f"HTF bias confidence {bias.confidence} below "
            f"{thresholds.min_htf_bias_confidence}"
        ]
    notes.append(
        f"4h flat; using HTF bias {bias.direction.value} "
        f"({bias.confidence}% from {bias.source})"
    )

    direction = bias.direction
    secondary = snapshot.get(SECONDARY_TIMEFRAME)
    tertiary = snapshot.get(TERTIARY_TIMEFRAME)
    if not is_aligned(secondary, direction):
        return False, [f"{SECONDARY_TIMEFRAME} trend does not agree with HTF bias"]
    if not is_aligned(tertiary, direction):
        return False, [f"{TERTIARY_TIMEFRAME} trend does not agree with HTF bias"]
    notes.append(
        f"{SECONDARY_TIMEFRAME}/{TERTIARY_TIMEFRAME} trends agree with "
        f"{direction.value} bias"
    )

    if not k_within(secondary.oscillator, direction, thresholds.override_momentum_max):
        return False, [f"{SECONDARY_TIMEFRAME} momentum does not leave room to run"]
    bound = thresholds.override_momentum_max
    if direction is Direction.SHORT:
        bound = 100.0 - bound
    notes.append(
        f"{SECONDARY_TIMEFRAME} stoch k {secondary.oscillator.k:.1f} "
        f"{'<' if direction is Direction.LONG else '>'} {bound:g}"
    )
    return True, notes
