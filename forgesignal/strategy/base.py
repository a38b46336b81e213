"""Strategy protocol, shared evaluator pipeline and result types.

Every evaluator runs the same two-stage pipeline:

    Stage A  gatekeepers:   ordered ``(name, check(ctx))`` pairs; the first
                            failure rejects the whole evaluation.
    Stage B  setup checks:  ordered ``(name, check(ctx, direction))`` pairs,
                            tried for long first, then short.

A resolved direction is turned into a signal via the entry zone, stop and
target, and confidence calculators.  Rejections are recorded in
``last_insight["result"]`` and surface as NO_TRADE in the selector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Protocol, Union, runtime_checkable

from forgesignal.risk.entry_zone import EntryZone
from forgesignal.risk.sl_tp import (
    RISK_MULTIPLES,
    STOP_PREFERENCES,
    calculate_stop_targets,
)
from forgesignal.strategy.confidence import ConfidenceBreakdown, compute_confidence
from forgesignal.strategy.models import (
    Direction,
    ExternalSentiment,
    HTFBias,
    MarketQuality,
    MarketSnapshot,
    Mode,
    StrategyKind,
    TimeframeSnapshot,
)
from forgesignal.strategy.predicates import (
    check_bias_override,
    is_finite_positive,
    primary_is_flat,
)
from forgesignal.strategy.thresholds import ModeThresholds, coerce_mode, thresholds_for

logger = logging.getLogger("forgesignal.strategy")


# ── Result types ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Signal:
    """One strategy's verdict: a valid trade setup or a NO_TRADE record."""

    strategy: StrategyKind
    mode: Mode
    valid: bool
    direction: Direction
    confidence: int
    reason: str
    entry_zone: Optional[EntryZone] = None
    stop_loss: Optional[float] = None
    invalidation_level: Optional[float] = None
    targets: tuple[float, ...] = ()
    risk_reward: Mapping[str, float] = field(default_factory=dict, hash=False)
    risk_amount: Optional[float] = None
    confidence_breakdown: Optional[ConfidenceBreakdown] = None
    confluence: Mapping[str, str] = field(default_factory=dict, hash=False)
    htf_bias: Optional[HTFBias] = None
    override_used: bool = False
    override_notes: tuple[str, ...] = ()
    timestamp: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "risk_reward", MappingProxyType(dict(self.risk_reward)))
        object.__setattr__(self, "confluence", MappingProxyType(dict(self.confluence)))

    @classmethod
    def no_trade(
        cls,
        strategy: StrategyKind,
        mode: Mode,
        reason: str,
        htf_bias: Optional[HTFBias] = None,
        timestamp: Optional[str] = None,
    ) -> Signal:
        return cls(
            strategy=strategy,
            mode=mode,
            valid=False,
            direction=Direction.NO_TRADE,
            confidence=0,
            reason=reason,
            htf_bias=htf_bias,
            timestamp=timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "mode": self.mode.value,
            "valid": self.valid,
            "direction": self.direction.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "entryZone": self.entry_zone.to_dict() if self.entry_zone else None,
            "stopLoss": self.stop_loss,
            "invalidationLevel": self.invalidation_level,
            "targets": list(self.targets),
            "riskReward": dict(self.risk_reward),
            "riskAmount": self.risk_amount,
            "confidenceBreakdown": (
                self.confidence_breakdown.to_dict()
                if self.confidence_breakdown else None
            ),
            "confluence": dict(self.confluence),
            "htfBias": self.htf_bias.to_dict() if self.htf_bias else None,
            "overrideUsed": self.override_used,
            "overrideNotes": list(self.override_notes),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class StrategyResultSet:
    """Every evaluated strategy's signal plus the priority pick."""

    symbol: str
    mode: Mode
    htf_bias: HTFBias
    strategies: Mapping[StrategyKind, Signal] = field(hash=False)
    best_signal: Optional[StrategyKind]
    timestamp: str
    override_used: bool = False
    override_notes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategies", MappingProxyType(dict(self.strategies)))

    @property
    def best(self) -> Optional[Signal]:
        if self.best_signal is None:
            return None
        return self.strategies[self.best_signal]

    @property
    def valid_signals(self) -> list[Signal]:
        return [s for s in self.strategies.values() if s.valid]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "mode": self.mode.value,
            "htfBias": self.htf_bias.to_dict(),
            "strategies": {
                kind.value: signal.to_dict()
                for kind, signal in self.strategies.items()
            },
            "bestSignal": self.best_signal.value if self.best_signal else None,
            "overrideUsed": self.override_used,
            "overrideNotes": list(self.override_notes),
            "timestamp": self.timestamp,
        }


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all strategy evaluators must satisfy."""

    kind: StrategyKind
    last_insight: dict

    def evaluate(
        self,
        snapshot: MarketSnapshot,
        current_price: float,
        mode: Union[Mode, str],
        htf_bias: HTFBias,
        *,
        override: bool = False,
        market_quality: Optional[MarketQuality] = None,
        external_sentiment: Optional[ExternalSentiment] = None,
    ) -> Optional[Signal]:
        """Evaluate the snapshot and return a valid signal or None."""
        ...


# ── Evaluation pipeline ──────────────────────────────────────────────────


@dataclass(frozen=True)
class EvaluationContext:
    """Inputs shared by every predicate of one evaluation."""

    snapshot: MarketSnapshot
    current_price: float
    mode: Mode
    thresholds: ModeThresholds
    htf_bias: HTFBias
    override: bool = False
    market_quality: Optional[MarketQuality] = None
    external_sentiment: Optional[ExternalSentiment] = None

    def tf(self, timeframe: str) -> Optional[TimeframeSnapshot]:
        return self.snapshot.get(timeframe)

    def bias_override(self) -> tuple[bool, list[str]]:
        """Override check for a flat primary; only meaningful when allowed."""
        return check_bias_override(self.snapshot, self.htf_bias, self.thresholds)


Check = tuple[str, Callable[[EvaluationContext], bool]]
DirectionalCheck = tuple[str, Callable[[EvaluationContext, Direction], bool]]


class BaseStrategy:
    """Shared two-stage evaluation pipeline.

    Subclasses set ``kind``, ``required_timeframes``, ``gatekeepers`` and
    ``setup_checks`` and implement ``entry_zone``.  ``risk_multiples`` and
    ``stop_preference`` default to the per-kind tables in ``risk.sl_tp``.
    """

    kind: StrategyKind
    required_timeframes: tuple[str, ...] = ()
    gatekeepers: tuple[Check, ...] = ()
    setup_checks: tuple[DirectionalCheck, ...] = ()
    aggressive_only: bool = False

    def __init__(self) -> None:
        self.last_insight: dict = {}

    @property
    def risk_multiples(self) -> tuple[float, ...]:
        return RISK_MULTIPLES[self.kind]

    @property
    def stop_preference(self) -> tuple[str, ...]:
        return STOP_PREFERENCES[self.kind]

    # ── Hooks ────────────────────────────────────────────────────────────

    def candidate_directions(self, ctx: EvaluationContext) -> tuple[Direction, ...]:
        return (Direction.LONG, Direction.SHORT)

    def entry_zone(self, ctx: EvaluationContext, direction: Direction) -> Optional[EntryZone]:
        raise NotImplementedError

    def confluence(self, ctx: EvaluationContext, direction: Direction) -> dict[str, str]:
        return {}

    def override_notes(self, ctx: EvaluationContext, direction: Direction) -> list[str]:
        """Notes when this signal leans on HTF bias in place of a flat 4h."""
        return []

    # ── Pipeline ─────────────────────────────────────────────────────────

    def evaluate(
        self,
        snapshot: MarketSnapshot,
        current_price: float,
        mode: Union[Mode, str],
        htf_bias: HTFBias,
        *,
        override: bool = False,
        market_quality: Optional[MarketQuality] = None,
        external_sentiment: Optional[ExternalSentiment] = None,
    ) -> Optional[Signal]:
        """Run gatekeepers, resolve a direction and assemble the signal.

        Returns:
            A valid ``Signal``, or ``None`` with the reason stored in
            ``last_insight["result"]``.
        """
        mode = coerce_mode(mode)
        checks: dict = {}
        self.last_insight = {
            "strategy": self.kind.value,
            "mode": mode.value,
            "override": override,
            "checks": checks,
            "result": None,
        }

        if self.aggressive_only and mode is not Mode.AGGRESSIVE:
            return self._reject("aggressive mode only")

        if isinstance(current_price, bool) or not isinstance(current_price, (int, float)):
            raise TypeError(
                f"current_price must be a number, got {type(current_price).__name__}"
            )
        missing = [tf for tf in self.required_timeframes if tf not in snapshot]
        if missing:
            return self._reject(f"missing timeframe data: {', '.join(missing)}")
        if not is_finite_positive(current_price):
            return self._reject("current price unavailable")

        ctx = EvaluationContext(
            snapshot=snapshot,
            current_price=float(current_price),
            mode=mode,
            thresholds=thresholds_for(mode),
            htf_bias=htf_bias,
            override=override,
            market_quality=market_quality,
            external_sentiment=external_sentiment,
        )

        # Stage A
        for name, check in self.gatekeepers:
            passed = bool(check(ctx))
            checks[name] = passed
            if not passed:
                return self._reject(f"gatekeeper failed: {name}")

        # Stage B
        direction = self._resolve_direction(ctx, checks)
        if direction is None:
            return self._reject("no setup in either direction")

        return self._assemble(ctx, direction)

    def _resolve_direction(self, ctx: EvaluationContext, checks: dict) -> Optional[Direction]:
        for direction in self.candidate_directions(ctx):
            results: dict[str, bool] = {}
            checks[direction.value] = results
            for name, check in self.setup_checks:
                passed = bool(check(ctx, direction))
                results[name] = passed
                if not passed:
                    break
            else:
                return direction
        return None

    def _assemble(self, ctx: EvaluationContext, direction: Direction) -> Optional[Signal]:
        zone = self.entry_zone(ctx, direction)
        if zone is None:
            return self._reject("entry anchor unavailable")
        self.last_insight["entry_zone"] = zone.to_dict()

        structures = {tf: snap.structure for tf, snap in ctx.snapshot.items()}
        stops = calculate_stop_targets(
            zone.mid,
            direction,
            structures,
            self.risk_multiples,
            self.stop_preference,
            beyond=zone.min if direction is Direction.LONG else zone.max,
        )
        if stops is None:
            return self._reject("degenerate risk")
        self.last_insight["stop_source"] = stops.stop_source

        breakdown = compute_confidence(
            ctx.snapshot,
            direction,
            ctx.mode,
            self.kind,
            htf_bias=ctx.htf_bias,
            market_quality=ctx.market_quality,
            external_sentiment=ctx.external_sentiment,
        )
        self.last_insight["confidence"] = breakdown.final
        if breakdown.suppressed:
            return self._reject("suppressed by market quality")
        floor = ctx.thresholds.min_confidence[self.kind]
        if breakdown.final < floor:
            return self._reject(f"confidence {breakdown.final} below floor {floor}")

        notes = tuple(self.override_notes(ctx, direction))
        confluence = self.confluence(ctx, direction)
        confluence.setdefault("htfBias", f"{ctx.htf_bias.direction.value} ({ctx.htf_bias.confidence}%)")
        self.last_insight["result"] = "signal"

        return Signal(
            strategy=self.kind,
            mode=ctx.mode,
            valid=True,
            direction=direction,
            confidence=breakdown.final,
            reason=f"{self.kind.value} {direction.value} setup",
            entry_zone=zone,
            stop_loss=stops.stop_loss,
            invalidation_level=stops.invalidation_level,
            targets=stops.targets,
            risk_reward=stops.risk_reward,
            risk_amount=stops.risk_amount,
            confidence_breakdown=breakdown,
            confluence=confluence,
            htf_bias=ctx.htf_bias,
            override_used=bool(notes),
            override_notes=notes,
        )

    def _reject(self, reason: str) -> None:
        self.last_insight["result"] = reason
        logger.debug("%s rejected: %s", self.kind.value, reason)
        return None


# ── Shared flat-primary handling ─────────────────────────────────────────


def primary_flat_allowed(ctx: EvaluationContext, allowed_by_mode: bool) -> bool:
    """A flat 4h passes when the mode allows it or the override check passes.

    With the selector's override flag, the override check is always required.
    """
    if not primary_is_flat(ctx.snapshot):
        return True
    if allowed_by_mode:
        return True
    if ctx.override:
        return ctx.bias_override()[0]
    return False


def bias_override_notes(ctx: EvaluationContext, substituted: bool = False) -> list[str]:
    """Override notes for a signal that relied on HTF bias over a flat 4h.

    *substituted* marks an evaluator that swapped in the bias on its own
    (aggressive trend primary); otherwise only the selector's override
    flag produces notes.
    """
    if not primary_is_flat(ctx.snapshot):
        return []
    if not ctx.override and not substituted:
        return []
    passed, notes = ctx.bias_override()
    if not passed:
        return []
    return notes
