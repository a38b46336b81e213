"""1H scalp: pullback entries in the 1H trend with 15m confirmation."""

from typing import Optional

from forgesignal.risk.entry_zone import EntryZone, pullback_zone
from forgesignal.strategy.base import (
    BaseStrategy,
    EvaluationContext,
    bias_override_notes,
    primary_flat_allowed,
)
from forgesignal.strategy.models import Direction, StrategyKind
from forgesignal.strategy.predicates import (
    is_aligned,
    is_finite_positive,
    is_retracing,
    is_trending,
    momentum_supports,
    within_ema,
)


class ScalpStrategy(BaseStrategy):
    """1H trend scalp; targets 1.5R / 3R.

    A flat or missing 4H blocks the scalp unless the mode allows it or the
    selector's override check passed.
    """

    kind = StrategyKind.SCALP
    required_timeframes = ("1h", "15m")

    gatekeepers = (
        ("1h_trending", lambda ctx: is_trending(ctx.tf("1h"))),
        ("4h_trending_or_allowed", lambda ctx: primary_flat_allowed(
            ctx, ctx.thresholds.allow_flat_primary_for_scalp,
        )),
    )

    setup_checks = (
        ("1h_aligned", lambda ctx, d: is_aligned(ctx.tf("1h"), d)),
        ("1h_near_ema", lambda ctx, d: within_ema(
            ctx.tf("1h"), ctx.thresholds.ema_pullback_max_secondary,
        )),
        ("15m_near_ema", lambda ctx, d: within_ema(
            ctx.tf("15m"), ctx.thresholds.ema_pullback_max,
        )),
        ("1h_retracing", lambda ctx, d: is_retracing(ctx.tf("1h"))),
        ("15m_retracing", lambda ctx, d: is_retracing(ctx.tf("15m"))),
        ("15m_momentum", lambda ctx, d: momentum_supports(
            ctx.tf("15m").oscillator, d, ctx.thresholds.strict_momentum,
        )),
    )

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        ema = ctx.tf("1h").ema.ema21
        if not is_finite_positive(ema):
            return None
        return pullback_zone(ema, direction)

    def override_notes(self, ctx: EvaluationContext, direction: Direction) -> list[str]:
        return bias_override_notes(ctx)

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        secondary = ctx.tf("1h")
        tertiary = ctx.tf("15m")
        return {
            "1h": (
                f"{secondary.trend.value}, {secondary.pullback_state.value}, "
                f"{secondary.distance_from_ema21_pct:+.2f}% from EMA21"
            ),
            "15m": (
                f"{tertiary.pullback_state.value}, "
                f"stoch {tertiary.oscillator.condition.value}"
            ),
            "entry": "pullback to 1h EMA21",
        }
