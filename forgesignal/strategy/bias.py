"""Higher-timeframe bias: one directional lean from two anchor timeframes.

Used as a fallback direction when the primary evaluation timeframe is flat.
"""

import math

from forgesignal.strategy.models import (
    Direction,
    HTFBias,
    MarketSnapshot,
    OscillatorCondition,
    PRIMARY_TIMEFRAME,
    SECONDARY_TIMEFRAME,
    TimeframeSnapshot,
    Trend,
)

PRIMARY_WEIGHT = 2.0
SECONDARY_WEIGHT = 1.0
OSCILLATOR_WEIGHT = 0.5

# Confidence assigned when a score tie is broken by an anchor's trend.
TIE_SECONDARY_CONFIDENCE = 60
TIE_PRIMARY_CONFIDENCE = 50

_LONG_CONDITIONS = (OscillatorCondition.BULLISH, OscillatorCondition.OVERSOLD)
_SHORT_CONDITIONS = (OscillatorCondition.BEARISH, OscillatorCondition.OVERBOUGHT)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _trend_direction(trend: Trend) -> Direction:
    if trend is Trend.UP:
        return Direction.LONG
    if trend is Trend.DOWN:
        return Direction.SHORT
    return Direction.NEUTRAL


def _score(tf: TimeframeSnapshot, weight: float) -> tuple[float, float]:
    long_score = short_score = 0.0
    if tf.trend is Trend.UP:
        long_score += weight
    elif tf.trend is Trend.DOWN:
        short_score += weight
    if tf.oscillator.condition in _LONG_CONDITIONS:
        long_score += OSCILLATOR_WEIGHT
    elif tf.oscillator.condition in _SHORT_CONDITIONS:
        short_score += OSCILLATOR_WEIGHT
    return long_score, short_score


def compute_htf_bias(
    snapshot: MarketSnapshot,
    primary: str = PRIMARY_TIMEFRAME,
    secondary: str = SECONDARY_TIMEFRAME,
) -> HTFBias:
    """Compute the HTF bias from the primary and secondary anchors.

    Args:
        snapshot: Timeframe key -> ``TimeframeSnapshot``.
        primary: Primary anchor key (trend weight 2).
        secondary: Secondary anchor key (trend weight 1).

    Returns:
        ``HTFBias``.  ``neutral/0/"none"`` when either anchor is missing,
        nothing scores, or a tie cannot be broken by either anchor's trend.

    Rules:
        - Trend adds its weight to the long or short bucket.
        - Oscillator bullish/oversold adds 0.5 to long,
          bearish/overbought adds 0.5 to short, on each anchor.
        - confidence = round(100 * winner / total), capped at 100.
        - Ties go to the secondary trend, then the primary trend.
    """
    p = snapshot.get(primary)
    s = snapshot.get(secondary)
    if p is None or s is None:
        return HTFBias.neutral()

    p_long, p_short = _score(p, PRIMARY_WEIGHT)
    s_long, s_short = _score(s, SECONDARY_WEIGHT)
    long_score = p_long + s_long
    short_score = p_short + s_short
    total = long_score + short_score
    if total <= 0:
        return HTFBias.neutral()

    if long_score == short_score:
        if s.trend is not Trend.FLAT:
            return HTFBias(
                direction=_trend_direction(s.trend),
                confidence=TIE_SECONDARY_CONFIDENCE,
                source=secondary,
            )
        if p.trend is not Trend.FLAT:
            return HTFBias(
                direction=_trend_direction(p.trend),
                confidence=TIE_PRIMARY_CONFIDENCE,
                source=primary,
            )
        return HTFBias.neutral()

    if long_score > short_score:
        direction, winner = Direction.LONG, long_score
    else:
        direction, winner = Direction.SHORT, short_score

    confidence = min(100, round_half_up(100.0 * winner / total))
    source = primary if p.trend is not Trend.FLAT else secondary
    return HTFBias(direction=direction, confidence=confidence, source=source)
