"""Per-mode threshold table.

Evaluator bodies are mode-agnostic; every numeric or boolean knob that
differs between ``standard`` and ``aggressive`` lives here.  Each
aggressive value is equal to or looser than its standard counterpart.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Union

from forgesignal.strategy.models import Mode, StrategyKind


@dataclass(frozen=True)
class ModeThresholds:
    # Distance bounds, percent from EMA21
    ema_pullback_max: float            # 15m (scalps) and 4h (swing)
    ema_pullback_max_secondary: float  # 1h (scalps)
    trend_pullback_max: float          # 4h (trend primary)
    rider_ema_max: float               # 1h (trend rider)
    micro_scalp_ema_band: float        # 15m/5m (micro), 5m/3m (aggro micro)
    swing_daily_ema_max: float         # allowed stretch above/below 1d EMA21

    # Flat-timeframe allowances
    allow_flat_primary_for_scalp: bool
    allow_flat_primary_for_rider: bool
    allow_bias_substitution: bool
    allow_flat_secondary_for_scalp: bool

    # HTF bias / override
    min_htf_bias_confidence: int
    trend_rider_min_bias: int
    override_momentum_max: float

    # Momentum strictness
    strict_momentum: bool
    micro_scalp_fast_confirmations: int

    # Confidence
    quality_floor: int
    min_confidence: Mapping[StrategyKind, int]
    cap_macro: int
    cap_primary: int
    cap_macro_primary: int
    cap_macro_exhaustion: int


STANDARD = ModeThresholds(
    ema_pullback_max=1.0,
    ema_pullback_max_secondary=1.5,
    trend_pullback_max=2.0,
    rider_ema_max=2.0,
    micro_scalp_ema_band=0.25,
    swing_daily_ema_max=3.0,
    allow_flat_primary_for_scalp=False,
    allow_flat_primary_for_rider=False,
    allow_bias_substitution=False,
    allow_flat_secondary_for_scalp=False,
    min_htf_bias_confidence=60,
    trend_rider_min_bias=65,
    override_momentum_max=60.0,
    strict_momentum=True,
    micro_scalp_fast_confirmations=2,
    quality_floor=65,
    min_confidence=MappingProxyType({
        StrategyKind.SWING: 60,
        StrategyKind.TREND_PRIMARY: 60,
        StrategyKind.TREND_RIDER: 60,
        StrategyKind.SCALP: 55,
        StrategyKind.MICRO_SCALP: 55,
    }),
    cap_macro=75,
    cap_primary=65,
    cap_macro_primary=55,
    cap_macro_exhaustion=45,
)

AGGRESSIVE = ModeThresholds(
    ema_pullback_max=1.75,
    ema_pullback_max_secondary=2.5,
    trend_pullback_max=3.0,
    rider_ema_max=3.0,
    micro_scalp_ema_band=0.75,
    swing_daily_ema_max=5.0,
    allow_flat_primary_for_scalp=True,
    allow_flat_primary_for_rider=True,
    allow_bias_substitution=True,
    allow_flat_secondary_for_scalp=True,
    min_htf_bias_confidence=40,
    trend_rider_min_bias=55,
    override_momentum_max=65.0,
    strict_momentum=False,
    micro_scalp_fast_confirmations=1,
    quality_floor=55,
    min_confidence=MappingProxyType({
        StrategyKind.SWING: 45,
        StrategyKind.TREND_PRIMARY: 45,
        StrategyKind.TREND_RIDER: 45,
        StrategyKind.SCALP: 40,
        StrategyKind.MICRO_SCALP: 40,
        StrategyKind.AGGRO_SCALP: 40,
        StrategyKind.AGGRO_MICRO_SCALP: 40,
    }),
    cap_macro=80,
    cap_primary=70,
    cap_macro_primary=60,
    cap_macro_exhaustion=50,
)

THRESHOLDS: Mapping[Mode, ModeThresholds] = MappingProxyType({
    Mode.STANDARD: STANDARD,
    Mode.AGGRESSIVE: AGGRESSIVE,
})

_MODE_ALIASES = {
    "standard": Mode.STANDARD,
    "safe": Mode.STANDARD,
    "conservative": Mode.STANDARD,
    "aggressive": Mode.AGGRESSIVE,
    "aggro": Mode.AGGRESSIVE,
}


def coerce_mode(mode: Union[Mode, str]) -> Mode:
    """Return ``mode`` as a ``Mode``.

    Accepts the enum or a case-insensitive name.  Raises ``ValueError``
    for anything else.
    """
    if isinstance(mode, Mode):
        return mode
    if isinstance(mode, str):
        found = _MODE_ALIASES.get(mode.strip().lower())
        if found is not None:
            return found
    raise ValueError(
        f"Unknown mode {mode!r}. Available: {', '.join(m.value for m in Mode)}"
    )


def thresholds_for(mode: Union[Mode, str]) -> ModeThresholds:
    return THRESHOLDS[coerce_mode(mode)]
