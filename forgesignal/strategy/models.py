"""Strategy data models: enumerations and typed indicator snapshots.

Label enumerations accept any producer spelling ("UPTREND", "entryZone",
"Oversold") through ``Enum`` lookup, so ``Trend("UP_TREND") is Trend.UP``.
Unrecognized labels fall back to the safe default member.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


def _squash(raw: Any) -> str:
    """Lower-case letters only: "ENTRY_ZONE" -> "entryzone"."""
    if raw is None:
        return ""
    return re.sub(r"[^a-z]", "", str(getattr(raw, "value", raw)).lower())


class Trend(str, Enum):
    UP = "uptrend"
    DOWN = "downtrend"
    FLAT = "flat"

    @classmethod
    def _missing_(cls, value: Any) -> "Trend":
        text = _squash(value)
        if "up" in text:
            return cls.UP
        if "down" in text:
            return cls.DOWN
        return cls.FLAT


class Pullback(str, Enum):
    ENTRY_ZONE = "entry_zone"
    RETRACING = "retracing"
    OVEREXTENDED = "overextended"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: Any) -> "Pullback":
        text = _squash(value)
        if text.startswith("entry"):
            return cls.ENTRY_ZONE
        if text.startswith("retrac"):
            return cls.RETRACING
        if text.startswith("overextend"):
            return cls.OVEREXTENDED
        return cls.UNKNOWN


class OscillatorCondition(str, Enum):
    OVERBOUGHT = "overbought"
    OVERSOLD = "oversold"
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    @classmethod
    def _missing_(cls, value: Any) -> "OscillatorCondition":
        text = _squash(value)
        for member in cls:
            if member.value == text:
                return member
        return cls.NEUTRAL


class Direction(str, Enum):
    """Trade direction.

    HTF bias uses LONG/SHORT/NEUTRAL; signals use LONG/SHORT/NO_TRADE.
    """

    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"
    NO_TRADE = "NO_TRADE"

    @property
    def opposite(self) -> "Direction":
        if self is Direction.LONG:
            return Direction.SHORT
        if self is Direction.SHORT:
            return Direction.LONG
        return self


class Mode(str, Enum):
    STANDARD = "standard"
    AGGRESSIVE = "aggressive"


class StrategyKind(str, Enum):
    SWING = "swing"
    TREND_PRIMARY = "trend_primary"
    TREND_RIDER = "trend_rider"
    SCALP = "scalp"
    MICRO_SCALP = "micro_scalp"
    AGGRO_SCALP = "aggro_scalp"
    AGGRO_MICRO_SCALP = "aggro_micro_scalp"


class VolumeQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ── Timeframes ───────────────────────────────────────────────────────────

TIMEFRAMES: tuple[str, ...] = (
    "1M", "1w", "3d", "1d", "4h", "1h", "15m", "5m", "3m", "1m",
)

MACRO_TIMEFRAMES: tuple[str, ...] = ("1M", "1w", "3d", "1d")
PRIMARY_TIMEFRAME = "4h"
SECONDARY_TIMEFRAME = "1h"
TERTIARY_TIMEFRAME = "15m"
EXECUTION_TIMEFRAMES: tuple[str, ...] = ("15m", "5m", "3m", "1m")


# ── Snapshot ─────────────────────────────────────────────────────────────


def _coerce_label(enum_cls: type, value: Any, name: str) -> Enum:
    """Enum member for *value*; label strings are normalized, other types raise."""
    if value is None or isinstance(value, str):
        return enum_cls(value)
    raise TypeError(
        f"{name} must be a {enum_cls.__name__} or label string, "
        f"got {type(value).__name__}"
    )


@dataclass(frozen=True)
class PriceInfo:
    current: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None


@dataclass(frozen=True)
class EmaInfo:
    ema21: Optional[float] = None
    ema200: Optional[float] = None


@dataclass(frozen=True)
class Oscillator:
    """Stochastic-style momentum reading (k/d in 0-100)."""

    k: Optional[float] = None
    d: Optional[float] = None
    condition: OscillatorCondition = OscillatorCondition.NEUTRAL

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "condition", _coerce_label(OscillatorCondition, self.condition, "condition"),
        )


@dataclass(frozen=True)
class SwingStructure:
    swing_high: Optional[float] = None
    swing_low: Optional[float] = None


@dataclass(frozen=True)
class TimeframeSnapshot:
    """Precomputed indicator state for one timeframe of one symbol."""

    price: PriceInfo = field(default_factory=PriceInfo)
    ema: EmaInfo = field(default_factory=EmaInfo)
    oscillator: Oscillator = field(default_factory=Oscillator)
    trend: Trend = Trend.FLAT
    pullback_state: Pullback = Pullback.UNKNOWN
    distance_from_ema21_pct: Optional[float] = None
    structure: SwingStructure = field(default_factory=SwingStructure)

    def __post_init__(self) -> None:
        object.__setattr__(self, "trend", _coerce_label(Trend, self.trend, "trend"))
        object.__setattr__(
            self, "pullback_state",
            _coerce_label(Pullback, self.pullback_state, "pullback_state"),
        )


MarketSnapshot = Mapping[str, TimeframeSnapshot]


# ── Derived / optional inputs ────────────────────────────────────────────


@dataclass(frozen=True)
class HTFBias:
    """Higher-timeframe directional lean.

    ``direction`` is NEUTRAL exactly when ``confidence`` is 0.
    """

    direction: Direction
    confidence: int
    source: str  # timeframe key or "none"

    @classmethod
    def neutral(cls) -> "HTFBias":
        return cls(direction=Direction.NEUTRAL, confidence=0, source="none")

    @property
    def is_neutral(self) -> bool:
        return self.direction is Direction.NEUTRAL

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "confidence": self.confidence,
            "source": self.source,
        }


@dataclass(frozen=True)
class MarketQuality:
    volume_quality: VolumeQuality = VolumeQuality.MEDIUM


@dataclass(frozen=True)
class ExternalSentiment:
    """Independent directional read (e.g. an order-flow or prediction feed)."""

    direction: Direction
    confidence: float  # 0-100
