"""Micro scalp: 15m/5m hugging their EMA21 inside a 1H trend."""

from typing import Optional

from forgesignal.risk.entry_zone import MICRO_BUFFER, EntryZone, pullback_zone
from forgesignal.strategy.base import BaseStrategy, EvaluationContext
from forgesignal.strategy.models import Direction, StrategyKind
from forgesignal.strategy.predicates import (
    is_aligned,
    is_deep_pullback_momentum,
    is_finite_positive,
    is_retracing,
    is_trending,
    within_ema,
)

FAST_TIMEFRAMES = ("15m", "5m")


def _tight_to_ema(ctx: EvaluationContext) -> bool:
    band = ctx.thresholds.micro_scalp_ema_band
    return all(within_ema(ctx.tf(tf), band) for tf in FAST_TIMEFRAMES)


def _fast_pullbacks(ctx: EvaluationContext) -> bool:
    return all(is_retracing(ctx.tf(tf)) for tf in FAST_TIMEFRAMES)


def _fast_momentum(ctx: EvaluationContext, direction: Direction) -> bool:
    confirmed = sum(
        1 for tf in FAST_TIMEFRAMES
        if is_deep_pullback_momentum(ctx.tf(tf).oscillator, direction)
    )
    return confirmed >= ctx.thresholds.micro_scalp_fast_confirmations


class MicroScalpStrategy(BaseStrategy):
    """Tight EMA21 scalp on 15m/5m; targets 1R / 1.5R."""

    kind = StrategyKind.MICRO_SCALP
    required_timeframes = ("1h", "15m", "5m")

    gatekeepers = (
        ("1h_trending", lambda ctx: is_trending(ctx.tf("1h"))),
        ("1h_retracing", lambda ctx: is_retracing(ctx.tf("1h"))),
        ("fast_tight_to_ema", _tight_to_ema),
        ("fast_retracing", _fast_pullbacks),
    )

    setup_checks = (
        ("1h_aligned", lambda ctx, d: is_aligned(ctx.tf("1h"), d)),
        ("fast_momentum", _fast_momentum),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        emas = [ctx.tf(tf).ema.ema21 for tf in FAST_TIMEFRAMES]
        if not is_finite_positive(*emas):
            return None
        return pullback_zone(sum(emas) / len(emas), direction, MICRO_BUFFER)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        result = {"1h": ctx.tf("1h").trend.value}
        for tf in FAST_TIMEFRAMES:
            snap = ctx.tf(tf)
            result[tf] = (
                f"{snap.distance_from_ema21_pct:+.2f}% from EMA21, "
                f"stoch {snap.oscillator.condition.value}"
            )
        result["entry"] = "mean of 15m/5m EMA21"
        return result
