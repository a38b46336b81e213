"""Aggressive-only scalp variants.

Both chase price with an aggressive zone at the current price instead of
waiting for a pullback, and both accept a flat anchor timeframe when the
HTF bias supplies the direction.
"""

from typing import Optional

from forgesignal.risk.entry_zone import EntryZone, aggressive_zone
from forgesignal.strategy.base import BaseStrategy, EvaluationContext
from forgesignal.strategy.models import Direction, StrategyKind, Trend
from forgesignal.strategy.predicates import (
    is_aligned,
    is_deep_pullback_momentum,
    is_retracing,
    k_within,
    within_ema,
)

AGGRO_K_LIMIT = 75.0


def _anchor_direction_ok(ctx: EvaluationContext, timeframe: str, direction: Direction) -> bool:
    """Anchor trend matches, or is flat (when allowed) with bias pointing this way."""
    anchor = ctx.tf(timeframe)
    if is_aligned(anchor, direction):
        return True
    return (
        anchor.trend is Trend.FLAT
        and ctx.thresholds.allow_flat_secondary_for_scalp
        and ctx.htf_bias.direction is direction
    )


class AggroScalpStrategy(BaseStrategy):
    """1H/15m scalp that chases price; targets 1.5R / 3R."""

    kind = StrategyKind.AGGRO_SCALP
    required_timeframes = ("1h", "15m")
    aggressive_only = True

    setup_checks = (
        ("1h_aligned_or_bias", lambda ctx, d: _anchor_direction_ok(ctx, "1h", d)),
        ("1h_near_ema", lambda ctx, d: within_ema(
            ctx.tf("1h"), ctx.thresholds.ema_pullback_max_secondary,
        )),
        ("15m_near_ema", lambda ctx, d: within_ema(
            ctx.tf("15m"), ctx.thresholds.ema_pullback_max,
        )),
        ("15m_retracing", lambda ctx, d: is_retracing(ctx.tf("15m"))),
        ("15m_room_to_run", lambda ctx, d: k_within(
            ctx.tf("15m").oscillator, d, AGGRO_K_LIMIT,
        )),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        return aggressive_zone(ctx.current_price, direction)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        tertiary = ctx.tf("15m")
        return {
            "1h": ctx.tf("1h").trend.value,
            "15m": f"{tertiary.pullback_state.value}, stoch k {tertiary.oscillator.k:.1f}",
            "entry": "at market",
        }


class AggroMicroScalpStrategy(BaseStrategy):
    """5m/3m micro scalp that chases price; targets 1R / 1.5R."""

    kind = StrategyKind.AGGRO_MICRO_SCALP
    required_timeframes = ("15m", "5m", "3m")
    aggressive_only = True

    setup_checks = (
        ("15m_aligned_or_bias", lambda ctx, d: _anchor_direction_ok(ctx, "15m", d)),
        ("fast_tight_to_ema", lambda ctx, d: all(
            within_ema(ctx.tf(tf), ctx.thresholds.micro_scalp_ema_band)
            for tf in ("5m", "3m")
        )),
        ("fast_momentum", lambda ctx, d: any(
            is_deep_pullback_momentum(ctx.tf(tf).oscillator, d)
            for tf in ("5m", "3m")
        )),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        return aggressive_zone(ctx.current_price, direction)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        return {
            "15m": ctx.tf("15m").trend.value,
            "5m": f"stoch {ctx.tf('5m').oscillator.condition.value}",
            "3m": f"stoch {ctx.tf('3m').oscillator.condition.value}",
            "entry": "at market",
        }
