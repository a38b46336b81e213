"""Strategy selector: run every evaluator for a mode and pick the best signal."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Mapping, Optional, Union

from forgesignal.strategy.base import Signal, StrategyResultSet
from forgesignal.strategy.bias import compute_htf_bias
from forgesignal.strategy.models import (
    ExternalSentiment,
    HTFBias,
    MarketQuality,
    MarketSnapshot,
    Mode,
    StrategyKind,
    TIMEFRAMES,
    TimeframeSnapshot,
)
from forgesignal.strategy.predicates import check_bias_override, primary_is_flat
from forgesignal.strategy.registry import get_strategy, kinds_for_mode
from forgesignal.strategy.thresholds import coerce_mode, thresholds_for
from forgesignal.strategy.validation import validate_signal

logger = logging.getLogger("forgesignal.selector")

PRIORITY: dict[Mode, tuple[StrategyKind, ...]] = {
    Mode.STANDARD: (
        StrategyKind.TREND_PRIMARY,
        StrategyKind.TREND_RIDER,
        StrategyKind.SWING,
        StrategyKind.SCALP,
        StrategyKind.MICRO_SCALP,
    ),
    Mode.AGGRESSIVE: (
        StrategyKind.TREND_RIDER,
        StrategyKind.TREND_PRIMARY,
        StrategyKind.SCALP,
        StrategyKind.MICRO_SCALP,
        StrategyKind.SWING,
        StrategyKind.AGGRO_SCALP,
        StrategyKind.AGGRO_MICRO_SCALP,
    ),
}

# Evaluators a flat 4H ordinarily blocks; re-run with the override flag.
OVERRIDABLE: tuple[StrategyKind, ...] = (
    StrategyKind.TREND_PRIMARY,
    StrategyKind.TREND_RIDER,
    StrategyKind.SCALP,
)


def _check_snapshot(snapshot: MarketSnapshot) -> None:
    if not isinstance(snapshot, Mapping):
        raise TypeError(f"snapshot must be a mapping, got {type(snapshot).__name__}")
    for timeframe, entry in snapshot.items():
        if timeframe not in TIMEFRAMES:
            raise ValueError(
                f"Unknown timeframe '{timeframe}'. Available: {', '.join(TIMEFRAMES)}"
            )
        if not isinstance(entry, TimeframeSnapshot):
            raise TypeError(
                f"snapshot[{timeframe}] must be a TimeframeSnapshot, "
                f"got {type(entry).__name__}"
            )


def _run(
    kind: StrategyKind,
    snapshot: MarketSnapshot,
    current_price: float,
    mode: Mode,
    bias: HTFBias,
    timestamp: str,
    *,
    override: bool = False,
    market_quality: Optional[MarketQuality] = None,
    external_sentiment: Optional[ExternalSentiment] = None,
) -> Signal:
    evaluator = get_strategy(kind)
    signal = evaluator.evaluate(
        snapshot,
        current_price,
        mode,
        bias,
        override=override,
        market_quality=market_quality,
        external_sentiment=external_sentiment,
    )
    if signal is None:
        reason = evaluator.last_insight.get("result") or "no setup"
        return Signal.no_trade(kind, mode, reason, htf_bias=bias, timestamp=timestamp)

    errors = validate_signal(signal)
    if errors:
        logger.warning(
            "%s %s signal failed validation: %s",
            kind.value, signal.direction.value, "; ".join(errors),
        )
        return Signal.no_trade(
            kind, mode, f"failed validation: {errors[0]}",
            htf_bias=bias, timestamp=timestamp,
        )
    return replace(signal, timestamp=timestamp)


def evaluate_all(
    symbol: str,
    snapshot: MarketSnapshot,
    current_price: float,
    mode: Union[Mode, str],
    *,
    market_quality: Optional[MarketQuality] = None,
    external_sentiment: Optional[ExternalSentiment] = None,
    now: Optional[datetime] = None,
) -> StrategyResultSet:
    """Evaluate every strategy applicable to *mode* and pick the best signal.

    Args:
        symbol: Instrument identifier, carried through to the result.
        snapshot: Timeframe key -> ``TimeframeSnapshot``.
        current_price: Latest traded price.
        mode: ``Mode`` or its name.
        market_quality: Optional volume-quality descriptor.
        external_sentiment: Optional independent directional read.
        now: Evaluation time for the ``timestamp`` field (default: UTC now).

    Returns:
        ``StrategyResultSet`` covering every evaluated kind.

    Raises:
        ValueError: Unknown mode or timeframe key.
        TypeError: Malformed snapshot or price.
    """
    mode = coerce_mode(mode)
    _check_snapshot(snapshot)
    thresholds = thresholds_for(mode)
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    bias = compute_htf_bias(snapshot)
    options = {"market_quality": market_quality, "external_sentiment": external_sentiment}

    results: dict[StrategyKind, Signal] = {
        kind: _run(kind, snapshot, current_price, mode, bias, timestamp, **options)
        for kind in kinds_for_mode(mode)
    }

    # ── Override path ────────────────────────────────────────────────────
    if primary_is_flat(snapshot):
        passed, notes = check_bias_override(snapshot, bias, thresholds)
        if passed:
            for kind in OVERRIDABLE:
                if results[kind].valid:
                    continue
                rerun = _run(
                    kind, snapshot, current_price, mode, bias, timestamp,
                    override=True, **options,
                )
                if rerun.valid:
                    results[kind] = rerun
        else:
            logger.debug("%s [%s] override not applied: %s", symbol, mode.value, notes[0])

    overridden = [s for s in results.values() if s.valid and s.override_used]
    override_used = bool(overridden)
    override_notes = overridden[0].override_notes if overridden else ()
    if override_used:
        logger.info(
            "%s [%s] override used: %s", symbol, mode.value, "; ".join(override_notes),
        )

    best: Optional[StrategyKind] = next(
        (kind for kind in PRIORITY[mode] if kind in results and results[kind].valid),
        None,
    )
    if best is None:
        logger.debug("%s [%s] no actionable signal", symbol, mode.value)
    else:
        chosen = results[best]
        logger.info(
            "%s [%s] best signal: %s %s confidence=%d",
            symbol, mode.value, best.value, chosen.direction.value, chosen.confidence,
        )

    return StrategyResultSet(
        symbol=symbol,
        mode=mode,
        htf_bias=bias,
        strategies=results,
        best_signal=best,
        timestamp=timestamp,
        override_used=override_used,
        override_notes=override_notes,
    )
