"""Hierarchical confidence scoring.

Three weighted timeframe layers scale a per-strategy base score:

    macro (40 %)      1M / 1w / 3d / 1d trend alignment
    primary (35 %)    4h / 1h trend alignment
    execution (25 %)  15m / 5m / 3m / 1m oscillator exhaustion

The layered score is then adjusted for HTF bias, market quality and
external sentiment, and finally capped by the worst contradiction found.
Every adjustment and cap is recorded for audit.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from forgesignal.strategy.bias import compute_htf_bias, round_half_up
from forgesignal.strategy.models import (
    Direction,
    EXECUTION_TIMEFRAMES,
    ExternalSentiment,
    HTFBias,
    MarketQuality,
    MarketSnapshot,
    Mode,
    PRIMARY_TIMEFRAME,
    SECONDARY_TIMEFRAME,
    StrategyKind,
    VolumeQuality,
)
from forgesignal.strategy.predicates import is_aligned, is_exhausted, is_opposed
from forgesignal.strategy.thresholds import thresholds_for

logger = logging.getLogger("forgesignal.confidence")

BASE_CONFIDENCE: dict[StrategyKind, int] = {
    StrategyKind.SWING: 80,
    StrategyKind.TREND_PRIMARY: 75,
    StrategyKind.TREND_RIDER: 75,
    StrategyKind.SCALP: 70,
    StrategyKind.MICRO_SCALP: 65,
    StrategyKind.AGGRO_SCALP: 60,
    StrategyKind.AGGRO_MICRO_SCALP: 55,
}

MACRO_LAYER_WEIGHT = 0.40
PRIMARY_LAYER_WEIGHT = 0.35
EXECUTION_LAYER_WEIGHT = 0.25

# Contribution of each slow timeframe to macro contradiction severity.
MACRO_WEIGHTS: dict[str, float] = {"1M": 0.5, "1w": 1.0, "3d": 1.5, "1d": 2.0}

MACRO_MULTIPLIERS = {"none": 1.0, "mild": 0.75, "moderate": 0.6, "severe": 0.4}
MILD_MAX_WEIGHT = 1.5
MODERATE_MAX_WEIGHT = 3.0

BIAS_ALIGNED_MAX = 0.10
BIAS_OPPOSED_MAX = 0.15
LOW_QUALITY_PENALTY = 0.05
SENTIMENT_ALIGNED_MAX = 0.05
SENTIMENT_OPPOSED_MAX = 0.07


@dataclass(frozen=True)
class ConfidenceAdjustment:
    step: str
    factor: float
    reason: str

    def to_dict(self) -> dict:
        return {"step": self.step, "factor": round(self.factor, 4), "reason": self.reason}


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Layer multipliers, adjustments and cap behind a confidence score."""

    base: int
    macro_severity: str
    macro_multiplier: float
    primary_multiplier: float
    execution_multiplier: float
    exhausted_timeframes: tuple[str, ...]
    layered_score: float
    adjustments: tuple[ConfidenceAdjustment, ...] = ()
    cap: Optional[int] = None
    cap_reason: Optional[str] = None
    final: int = 0
    suppressed: bool = False
    penalties: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict:
        return {
            "base": self.base,
            "layers": {
                "macro": {
                    "severity": self.macro_severity,
                    "multiplier": self.macro_multiplier,
                    "weight": MACRO_LAYER_WEIGHT,
                },
                "primary": {
                    "multiplier": self.primary_multiplier,
                    "weight": PRIMARY_LAYER_WEIGHT,
                },
                "execution": {
                    "multiplier": self.execution_multiplier,
                    "weight": EXECUTION_LAYER_WEIGHT,
                    "exhausted": list(self.exhausted_timeframes),
                },
            },
            "layeredScore": round(self.layered_score, 2),
            "adjustments": [a.to_dict() for a in self.adjustments],
            "cap": self.cap,
            "capReason": self.cap_reason,
            "final": self.final,
            "suppressed": self.suppressed,
            "penalties": list(self.penalties),
        }


# ── Layers ───────────────────────────────────────────────────────────────


def _macro_layer(snapshot: MarketSnapshot, direction: Direction) -> tuple[str, list[str]]:
    opposed = [tf for tf in MACRO_WEIGHTS if is_opposed(snapshot.get(tf), direction)]
    weight = sum(MACRO_WEIGHTS[tf] for tf in opposed)
    if weight <= 0:
        return "none", opposed
    if weight <= MILD_MAX_WEIGHT:
        return "mild", opposed
    if weight <= MODERATE_MAX_WEIGHT:
        return "moderate", opposed
    return "severe", opposed


def _primary_layer(snapshot: MarketSnapshot, direction: Direction) -> tuple[float, str]:
    primary = snapshot.get(PRIMARY_TIMEFRAME)
    secondary = snapshot.get(SECONDARY_TIMEFRAME)
    if is_opposed(primary, direction):
        return 0.5, f"{PRIMARY_TIMEFRAME} trend opposes {direction.value}"
    if is_aligned(primary, direction):
        if is_opposed(secondary, direction):
            return 0.85, f"{SECONDARY_TIMEFRAME} trend opposes {direction.value}"
        return 1.0, ""
    # Primary flat or missing
    if is_aligned(secondary, direction):
        return 0.85, f"{PRIMARY_TIMEFRAME} flat, {SECONDARY_TIMEFRAME} aligned"
    if is_opposed(secondary, direction):
        return 0.6, f"{PRIMARY_TIMEFRAME} flat, {SECONDARY_TIMEFRAME} opposes"
    return 0.7, f"{PRIMARY_TIMEFRAME} and {SECONDARY_TIMEFRAME} flat"


def _execution_layer(snapshot: MarketSnapshot, direction: Direction) -> tuple[float, list[str]]:
    exhausted = [
        tf for tf in EXECUTION_TIMEFRAMES
        if tf in snapshot and is_exhausted(snapshot[tf].oscillator, direction)
    ]
    if len(exhausted) >= 2:
        return 0.7, exhausted
    if len(exhausted) == 1:
        return 0.9, exhausted
    return 1.0, exhausted


# ── Public API ───────────────────────────────────────────────────────────


def compute_confidence(
    snapshot: MarketSnapshot,
    direction: Direction,
    mode: Union[Mode, str],
    kind: StrategyKind,
    *,
    htf_bias: Optional[HTFBias] = None,
    market_quality: Optional[MarketQuality] = None,
    external_sentiment: Optional[ExternalSentiment] = None,
) -> ConfidenceBreakdown:
    """Score a candidate signal from 0 to 100.

    Args:
        snapshot: Timeframe key -> ``TimeframeSnapshot``.
        direction: ``Direction.LONG`` or ``Direction.SHORT``.
        mode: Selects confidence caps and the market-quality floor.
        kind: Selects the base score.
        htf_bias: Precomputed bias; computed from *snapshot* when omitted.
        market_quality: Optional volume-quality descriptor.
        external_sentiment: Optional independent directional read.

    Returns:
        ``ConfidenceBreakdown`` whose ``final`` is an int in [0, 100] and
        never above the cap for the worst contradiction present.
    """
    if direction not in (Direction.LONG, Direction.SHORT):
        raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")
    thresholds = thresholds_for(mode)
    if htf_bias is None:
        htf_bias = compute_htf_bias(snapshot)

    base = BASE_CONFIDENCE[kind]
    penalties: list[str] = []

    severity, opposed_macro = _macro_layer(snapshot, direction)
    macro_mult = MACRO_MULTIPLIERS[severity]
    if opposed_macro:
        penalties.append(
            f"macro {severity}: {', '.join(opposed_macro)} oppose {direction.value}"
        )

    primary_mult, primary_reason = _primary_layer(snapshot, direction)
    if primary_reason:
        penalties.append(f"primary x{primary_mult}: {primary_reason}")

    exec_mult, exhausted = _execution_layer(snapshot, direction)
    if exhausted:
        penalties.append(f"execution x{exec_mult}: {', '.join(exhausted)} exhausted")

    layered = base * (
        MACRO_LAYER_WEIGHT * macro_mult
        + PRIMARY_LAYER_WEIGHT * primary_mult
        + EXECUTION_LAYER_WEIGHT * exec_mult
    )
    score = layered
    adjustments: list[ConfidenceAdjustment] = []

    # HTF bias
    if not htf_bias.is_neutral:
        if htf_bias.direction is direction:
            factor = 1 + BIAS_ALIGNED_MAX * htf_bias.confidence / 100.0
            reason = f"HTF bias aligned ({htf_bias.confidence}%)"
        else:
            factor = 1 - BIAS_OPPOSED_MAX * htf_bias.confidence / 100.0
            reason = f"HTF bias opposed ({htf_bias.confidence}%)"
            penalties.append(reason)
        score *= factor
        adjustments.append(ConfidenceAdjustment("htf_bias", factor, reason))

    # Market quality
    degraded = (
        market_quality is not None
        and market_quality.volume_quality is VolumeQuality.LOW
    )
    if degraded:
        factor = 1 - LOW_QUALITY_PENALTY
        score *= factor
        adjustments.append(
            ConfidenceAdjustment("market_quality", factor, "low volume quality")
        )
        penalties.append("low volume quality")

    # External sentiment
    if (
        external_sentiment is not None
        and external_sentiment.direction in (Direction.LONG, Direction.SHORT)
    ):
        strength = max(0.0, min(100.0, float(external_sentiment.confidence))) / 100.0
        if external_sentiment.direction is direction:
            factor = 1 + SENTIMENT_ALIGNED_MAX * strength
            reason = "external sentiment aligned"
        else:
            factor = 1 - SENTIMENT_OPPOSED_MAX * strength
            reason = "external sentiment opposed"
            penalties.append(reason)
        score *= factor
        adjustments.append(ConfidenceAdjustment("external_sentiment", factor, reason))

    # Hard caps: lowest applicable ceiling wins
    macro_contradiction = severity != "none"
    primary_contradiction = is_opposed(snapshot.get(PRIMARY_TIMEFRAME), direction)
    caps: list[tuple[int, str]] = []
    if macro_contradiction:
        caps.append((thresholds.cap_macro, "macro contradiction"))
    if primary_contradiction:
        caps.append((thresholds.cap_primary, "primary contradiction"))
    if macro_contradiction and primary_contradiction:
        caps.append((thresholds.cap_macro_primary, "macro and primary contradiction"))
    if severity == "severe" and exhausted:
        caps.append((thresholds.cap_macro_exhaustion, "macro opposite with execution exhaustion"))

    cap = cap_reason = None
    if caps:
        cap, cap_reason = min(caps)
        if score > cap:
            penalties.append(f"capped at {cap}: {cap_reason}")
            score = float(cap)

    final = max(0, min(100, round_half_up(score)))
    if cap is not None:
        final = min(final, cap)
    suppressed = degraded and final < thresholds.quality_floor
    if suppressed:
        logger.debug(
            "%s %s suppressed: confidence %d below quality floor %d",
            kind.value, direction.value, final, thresholds.quality_floor,
        )

    return ConfidenceBreakdown(
        base=base,
        macro_severity=severity,
        macro_multiplier=macro_mult,
        primary_multiplier=primary_mult,
        execution_multiplier=exec_mult,
        exhausted_timeframes=tuple(exhausted),
        layered_score=layered,
        adjustments=tuple(adjustments),
        cap=cap,
        cap_reason=cap_reason,
        final=final,
        suppressed=suppressed,
        penalties=tuple(penalties),
    )
