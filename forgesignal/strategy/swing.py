"""Swing strategy: 3D pivot with a 1D reclaim and 4H confirmation.

The 3D trend carries the direction; the 1D trend is pulling back against
it and turning; the 4H has already re-established the 3D direction.
Entry waits for a reclaim level halfway between the 1D swing extreme and
the 1D EMA21.  Unaffected by mode at the gatekeeper stage.
"""

from typing import Optional

from forgesignal.risk.entry_zone import SWING_BUFFER, EntryZone, pullback_zone
from forgesignal.strategy.base import BaseStrategy, EvaluationContext
from forgesignal.strategy.models import Direction, Pullback, StrategyKind
from forgesignal.strategy.predicates import (
    is_aligned,
    is_finite_positive,
    is_opposed,
    is_retracing,
    is_trending,
    k_within,
    momentum_supports,
    pullback_in,
    within_ema,
)

# Fallback for a missing 1D swing extreme, as a fraction of the 1D EMA21.
DAILY_RANGE_FALLBACK = 0.10
PIVOT_K_LIMIT = 25.0


def _daily_extreme(ctx: EvaluationContext, direction: Direction) -> Optional[float]:
    """1D swing low (long) / high (short), else EMA21 -/+ 10 %."""
    daily = ctx.tf("1d")
    ema = daily.ema.ema21
    if not is_finite_positive(ema):
        return None
    if direction is Direction.LONG:
        level = daily.structure.swing_low
        return level if is_finite_positive(level) else ema * (1 - DAILY_RANGE_FALLBACK)
    level = daily.structure.swing_high
    return level if is_finite_positive(level) else ema * (1 + DAILY_RANGE_FALLBACK)


def _daily_pivot(ctx: EvaluationContext, direction: Direction) -> bool:
    osc = ctx.tf("1d").oscillator
    return momentum_supports(osc, direction, strict=True) or k_within(
        osc, direction, PIVOT_K_LIMIT,
    )


def _price_in_daily_range(ctx: EvaluationContext, direction: Direction) -> bool:
    ema = ctx.tf("1d").ema.ema21
    extreme = _daily_extreme(ctx, direction)
    if extreme is None:
        return False
    stretch = ctx.thresholds.swing_daily_ema_max / 100.0
    price = ctx.current_price
    if direction is Direction.LONG:
        return extreme <= price <= ema * (1 + stretch)
    return ema * (1 - stretch) <= price <= extreme


class SwingStrategy(BaseStrategy):
    """Multi-day swing entries; targets 3R / 4R / 5R."""

    kind = StrategyKind.SWING
    required_timeframes = ("3d", "1d", "4h")

    gatekeepers = (
        ("4h_trending", lambda ctx: is_trending(ctx.tf("4h"))),
        ("3d_trending", lambda ctx: is_trending(ctx.tf("3d"))),
        ("1d_trending", lambda ctx: is_trending(ctx.tf("1d"))),
        ("3d_overextended_or_retracing", lambda ctx: pullback_in(
            ctx.tf("3d"), Pullback.OVEREXTENDED, Pullback.RETRACING,
        )),
        ("1d_retracing_or_entry_zone", lambda ctx: is_retracing(ctx.tf("1d"))),
    )

    setup_checks = (
        ("3d_aligned", lambda ctx, d: is_aligned(ctx.tf("3d"), d)),
        ("1d_counter_trend", lambda ctx, d: is_opposed(ctx.tf("1d"), d)),
        ("1d_pivot", _daily_pivot),
        ("4h_aligned", lambda ctx, d: is_aligned(ctx.tf("4h"), d)),
        ("4h_retracing", lambda ctx, d: is_retracing(ctx.tf("4h"))),
        ("4h_near_ema", lambda ctx, d: within_ema(
            ctx.tf("4h"), ctx.thresholds.ema_pullback_max,
        )),
        ("price_in_daily_range", _price_in_daily_range),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        ema = ctx.tf("1d").ema.ema21
        extreme = _daily_extreme(ctx, direction)
        if extreme is None:
            return None
        reclaim = (extreme + ema) / 2.0
        if not is_finite_positive(reclaim):
            return None
        return pullback_zone(reclaim, direction, SWING_BUFFER)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        side = "low" if direction is Direction.LONG else "high"
        return {
            "3d": f"{ctx.tf('3d').trend.value}, {ctx.tf('3d').pullback_state.value}",
            "1d": (
                f"{ctx.tf('1d').trend.value} pullback, "
                f"stoch {ctx.tf('1d').oscillator.condition.value}"
            ),
            "4h": f"{ctx.tf('4h').trend.value} near EMA21",
            "entry": f"reclaim between 1d swing {side} and 1d EMA21",
        }
