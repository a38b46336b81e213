"""4H trend strategy: buy pullbacks to the 4H EMA21 in the 4H trend.

Direction comes from the 4H trend.  With a flat 4H the HTF bias may
stand in, either because the mode allows substitution or because the
selector re-ran the evaluation with the override flag; both paths
require the bias override check to pass.
"""

from typing import Optional

from forgesignal.risk.entry_zone import EntryZone, pullback_zone
from forgesignal.strategy.base import (
    BaseStrategy,
    EvaluationContext,
    bias_override_notes,
)
from forgesignal.strategy.models import Direction, Pullback, StrategyKind
from forgesignal.strategy.predicates import (
    is_finite_positive,
    is_opposed,
    momentum_opposes,
    primary_is_flat,
    trend_direction,
    within_ema,
)


def _bias_may_substitute(ctx: EvaluationContext) -> bool:
    return ctx.thresholds.allow_bias_substitution or ctx.override


def _direction_available(ctx: EvaluationContext) -> bool:
    if not primary_is_flat(ctx.snapshot):
        return True
    return _bias_may_substitute(ctx) and ctx.bias_override()[0]


def _fast_oscillators_allow(ctx: EvaluationContext, direction: Direction) -> bool:
    """15m/5m momentum must not be against the trade.

    Strict momentum rejects when either opposes; loose only when both do.
    """
    opposing = [
        momentum_opposes(ctx.tf(tf).oscillator, direction)
        for tf in ("15m", "5m")
        if ctx.tf(tf) is not None
    ]
    if not opposing:
        return True
    if ctx.thresholds.strict_momentum:
        return not any(opposing)
    return not all(opposing)


class TrendPrimaryStrategy(BaseStrategy):
    """4H trend continuation; targets 1R / 2R."""

    kind = StrategyKind.TREND_PRIMARY
    required_timeframes = ("4h",)

    gatekeepers = (
        ("4h_direction_or_bias_override", _direction_available),
    )

    setup_checks = (
        ("4h_not_overextended", lambda ctx, d: ctx.tf("4h").pullback_state
            is not Pullback.OVEREXTENDED),
        ("4h_near_ema", lambda ctx, d: within_ema(
            ctx.tf("4h"), ctx.thresholds.trend_pullback_max,
        )),
        ("1h_not_opposed", lambda ctx, d: not is_opposed(ctx.tf("1h"), d)),
        ("fast_momentum_allows", _fast_oscillators_allow),
    )

    def candidate_directions(self, ctx: EvaluationContext) -> tuple[Direction, ...]:
        direction = trend_direction(ctx.tf("4h").trend)
        if direction is None:
            direction = ctx.htf_bias.direction
        if direction not in (Direction.LONG, Direction.SHORT):
            return ()
        return (direction,)

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        ema = ctx.tf("4h").ema.ema21
        if not is_finite_positive(ema):
            return None
        return pullback_zone(ema, direction)

    def override_notes(self, ctx: EvaluationContext, direction: Direction) -> list[str]:
        return bias_override_notes(
            ctx, substituted=ctx.thresholds.allow_bias_substitution,
        )

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        primary = ctx.tf("4h")
        secondary = ctx.tf("1h")
        result = {
            "4h": (
                f"{primary.trend.value}, {primary.pullback_state.value}, "
                f"{primary.distance_from_ema21_pct:+.2f}% from EMA21"
            ),
            "entry": "pullback to 4h EMA21",
        }
        if secondary is not None:
            result["1h"] = secondary.trend.value
        return result
