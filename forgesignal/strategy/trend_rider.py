"""Trend rider: ride a strong HTF bias on the 1H.

Requires a confident HTF bias that the 4H agrees with.  Enters on a 1H
breakout when price has already cleared the 1H swing extreme with
supporting momentum, otherwise on a pullback to the 1H EMA21.
"""

from typing import Optional

from forgesignal.risk.entry_zone import EntryZone, breakout_zone, pullback_zone
from forgesignal.strategy.base import (
    BaseStrategy,
    EvaluationContext,
    bias_override_notes,
    primary_flat_allowed,
)
from forgesignal.strategy.models import Direction, OscillatorCondition, StrategyKind
from forgesignal.strategy.predicates import (
    is_aligned,
    is_finite_positive,
    is_opposed,
    momentum_supports,
    within_ema,
)


def _bias_strong(ctx: EvaluationContext) -> bool:
    bias = ctx.htf_bias
    return not bias.is_neutral and bias.confidence >= ctx.thresholds.trend_rider_min_bias


def _primary_agrees(ctx: EvaluationContext) -> bool:
    primary = ctx.tf("4h")
    if is_opposed(primary, ctx.htf_bias.direction):
        return False
    if is_aligned(primary, ctx.htf_bias.direction):
        return True
    return primary_flat_allowed(ctx, ctx.thresholds.allow_flat_primary_for_rider)


def _breakout_level(ctx: EvaluationContext, direction: Direction) -> Optional[float]:
    """1H swing extreme already cleared by price with 1H momentum behind it."""
    secondary = ctx.tf("1h")
    if direction is Direction.LONG:
        level = secondary.structure.swing_high
        momentum = OscillatorCondition.BULLISH
        cleared = is_finite_positive(level) and ctx.current_price > level
    else:
        level = secondary.structure.swing_low
        momentum = OscillatorCondition.BEARISH
        cleared = is_finite_positive(level) and ctx.current_price < level
    if cleared and secondary.oscillator.condition is momentum:
        return level
    return None


class TrendRiderStrategy(BaseStrategy):
    """HTF-bias continuation on the 1H; targets 2R / 3.5R."""

    kind = StrategyKind.TREND_RIDER
    required_timeframes = ("4h", "1h")

    gatekeepers = (
        ("htf_bias_strong", _bias_strong),
        ("4h_agrees_with_bias", _primary_agrees),
    )

    setup_checks = (
        ("direction_matches_bias", lambda ctx, d: d is ctx.htf_bias.direction),
        ("1h_aligned", lambda ctx, d: is_aligned(ctx.tf("1h"), d)),
        ("1h_near_ema", lambda ctx, d: within_ema(
            ctx.tf("1h"), ctx.thresholds.rider_ema_max,
        )),
        ("1h_momentum", lambda ctx, d: momentum_supports(
            ctx.tf("1h").oscillator, d, ctx.thresholds.strict_momentum,
        )),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        level = _breakout_level(ctx, direction)
        if level is not None:
            return breakout_zone(level, direction)
        ema = ctx.tf("1h").ema.ema21
        if not is_finite_positive(ema):
            return None
        return pullback_zone(ema, direction)

    def override_notes(self, ctx: EvaluationContext, direction: Direction) -> list[str]:
        return bias_override_notes(ctx)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        secondary = ctx.tf("1h")
        entry = (
            "1h breakout" if _breakout_level(ctx, direction) is not None
            else "pullback to 1h EMA21"
        )
        return {
            "bias": f"{ctx.htf_bias.direction.value} {ctx.htf_bias.confidence}%",
            "4h": ctx.tf("4h").trend.value,
            "1h": f"{secondary.trend.value}, stoch {secondary.oscillator.condition.value}",
            "entry": entry,
        }
