"""Label normalization and snapshot parsing.

Indicator producers label trends, pullbacks and oscillator states in
arbitrary case and format ("UPTREND", "Up", "entryZone", "ENTRY_ZONE").
The ``normalize_*`` functions are total: every input maps to a member of
the closed enumeration, with an explicit safe default.  The label rules
live on the enumerations themselves (see ``models``), so a
``TimeframeSnapshot`` built with plain strings normalizes the same way.

``market_snapshot_from_dict`` turns the collaborator's camelCase dict
shape into typed ``TimeframeSnapshot`` objects.  Unknown labels are
normalized; structurally wrong input raises.
"""

from typing import Any, Mapping, Optional

from forgesignal.strategy.models import (
    EmaInfo,
    Oscillator,
    OscillatorCondition,
    PriceInfo,
    Pullback,
    SwingStructure,
    TIMEFRAMES,
    TimeframeSnapshot,
    Trend,
)


def normalize_trend(raw: Any) -> Trend:
    """Map any trend label to ``Trend``.

    Contains "up" -> uptrend, else contains "down" -> downtrend, else flat.
    """
    return Trend(raw)


def normalize_pullback(raw: Any) -> Pullback:
    return Pullback(raw)


def normalize_condition(raw: Any) -> OscillatorCondition:
    return OscillatorCondition(raw)


# ── Snapshot parsing ─────────────────────────────────────────────────────


def _number(value: Any, path: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{path} must be a number or None, got {type(value).__name__}")
    return float(value)


def _section(raw: Mapping, key: str, path: str, alias: Optional[str] = None) -> Mapping:
    value = raw.get(key)
    if value is None and alias is not None:
        value = raw.get(alias)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"{path}.{key} must be a mapping, got {type(value).__name__}")
    return value


def _get(raw: Mapping, camel: str, snake: str) -> Any:
    return raw[camel] if camel in raw else raw.get(snake)


def snapshot_from_dict(raw: Mapping, timeframe: str = "?") -> TimeframeSnapshot:
    """Build a ``TimeframeSnapshot`` from a plain dict.

    Accepts camelCase keys (``pullbackState``, ``distanceFromEma21Pct``,
    ``swingHigh``) and their snake_case equivalents.  Absent fields become
    ``None``; wrong types raise ``TypeError``.
    """
    if not isinstance(raw, Mapping):
        raise TypeError(
            f"snapshot[{timeframe}] must be a mapping, got {type(raw).__name__}"
        )
    path = f"snapshot[{timeframe}]"

    price = _section(raw, "price", path)
    ema = _section(raw, "ema", path)
    osc = _section(raw, "oscillator", path, alias="stoch")
    structure = _section(raw, "structure", path)

    return TimeframeSnapshot(
        price=PriceInfo(
            current=_number(price.get("current"), f"{path}.price.current"),
            high=_number(price.get("high"), f"{path}.price.high"),
            low=_number(price.get("low"), f"{path}.price.low"),
        ),
        ema=EmaInfo(
            ema21=_number(ema.get("ema21"), f"{path}.ema.ema21"),
            ema200=_number(ema.get("ema200"), f"{path}.ema.ema200"),
        ),
        oscillator=Oscillator(
            k=_number(osc.get("k"), f"{path}.oscillator.k"),
            d=_number(osc.get("d"), f"{path}.oscillator.d"),
            condition=normalize_condition(osc.get("condition")),
        ),
        trend=normalize_trend(raw.get("trend")),
        pullback_state=normalize_pullback(_get(raw, "pullbackState", "pullback_state")),
        distance_from_ema21_pct=_number(
            _get(raw, "distanceFromEma21Pct", "distance_from_ema21_pct"),
            f"{path}.distanceFromEma21Pct",
        ),
        structure=SwingStructure(
            swing_high=_number(
                _get(structure, "swingHigh", "swing_high"), f"{path}.structure.swingHigh",
            ),
            swing_low=_number(
                _get(structure, "swingLow", "swing_low"), f"{path}.structure.swingLow",
            ),
        ),
    )


def market_snapshot_from_dict(raw: Mapping) -> dict[str, TimeframeSnapshot]:
    """Parse a ``{timeframe: snapshot_dict}`` mapping.

    Raises ``ValueError`` for a timeframe key outside ``TIMEFRAMES`` and
    ``TypeError`` for a null-valued or non-mapping entry (a missing timeframe
    must be an absent key).
    """
    if not isinstance(raw, Mapping):
        raise TypeError(f"snapshot must be a mapping, got {type(raw).__name__}")
    result: dict[str, TimeframeSnapshot] = {}
    for timeframe, entry in raw.items():
        if timeframe not in TIMEFRAMES:
            raise ValueError(
                f"Unknown timeframe '{timeframe}'. "
                f"Available: {', '.join(TIMEFRAMES)}"
            )
        if isinstance(entry, TimeframeSnapshot):
            result[timeframe] = entry
        else:
            result[timeframe] = snapshot_from_dict(entry, timeframe)
    return result
