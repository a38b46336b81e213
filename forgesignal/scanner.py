"""SignalScanner: evaluates many symbols across the configured modes.

Each symbol is evaluated once per mode through the strategy selector.
A caller-owned ``SignalCooldown`` decides which best signals are fresh
enough to announce; the engine itself stays stateless.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from forgesignal.config import Config
from forgesignal.risk.cooldown import SignalCooldown
from forgesignal.strategy.base import Signal, StrategyResultSet
from forgesignal.strategy.models import (
    ExternalSentiment,
    MarketQuality,
    Mode,
    TimeframeSnapshot,
)
from forgesignal.strategy.normalize import market_snapshot_from_dict
from forgesignal.strategy.selector import evaluate_all

logger = logging.getLogger("forgesignal.scanner")


@dataclass(frozen=True)
class ScanRequest:
    """One symbol's inputs for a scan."""

    symbol: str
    snapshot: Mapping[str, TimeframeSnapshot]
    current_price: float
    market_quality: Optional[MarketQuality] = None
    external_sentiment: Optional[ExternalSentiment] = None

    @classmethod
    def from_dict(
        cls,
        symbol: str,
        raw_snapshot: Mapping,
        current_price: float,
        *,
        market_quality: Optional[MarketQuality] = None,
        external_sentiment: Optional[ExternalSentiment] = None,
    ) -> "ScanRequest":
        """Build a request from the collaborator's dict-shaped snapshot."""
        return cls(
            symbol=symbol,
            snapshot=market_snapshot_from_dict(raw_snapshot),
            current_price=current_price,
            market_quality=market_quality,
            external_sentiment=external_sentiment,
        )


@dataclass(frozen=True)
class ScanResult:
    """Per-mode result sets for one symbol plus which best signals are fresh."""

    symbol: str
    results: Mapping[Mode, StrategyResultSet]
    fresh: tuple[Mode, ...] = field(default=())

    def fresh_signals(self) -> dict[Mode, Signal]:
        return {mode: self.results[mode].best for mode in self.fresh}


class SignalScanner:
    """Runs the selector for every (symbol, mode) pair.

    Args:
        config:   Global ``Config`` (modes to evaluate, cooldown length).
        cooldown: Optional caller-owned store; one is created from
                  ``config.cooldown_minutes`` when omitted.
    """

    def __init__(
        self,
        config: Config,
        cooldown: Optional[SignalCooldown] = None,
    ) -> None:
        self._config = config
        self._cooldown = cooldown or SignalCooldown(config.cooldown_minutes)

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def modes(self) -> tuple[Mode, ...]:
        return self._config.modes

    @property
    def cooldown(self) -> SignalCooldown:
        return self._cooldown

    def scan_symbol(
        self,
        request: ScanRequest,
        now: Optional[datetime] = None,
    ) -> ScanResult:
        """Evaluate one symbol in every configured mode.

        A mode's best signal is *fresh* unless the same strategy and
        direction fired for this symbol and mode within the cooldown.
        Fresh signals are recorded in the cooldown store.
        """
        now = now or datetime.now(timezone.utc)
        results: dict[Mode, StrategyResultSet] = {}
        fresh: list[Mode] = []

        for mode in self.modes:
            result = evaluate_all(
                request.symbol,
                request.snapshot,
                request.current_price,
                mode,
                market_quality=request.market_quality,
                external_sentiment=request.external_sentiment,
                now=now,
            )
            results[mode] = result
            best = result.best
            if best is None:
                continue

            key = (request.symbol, mode, best.strategy, best.direction)
            if self._cooldown.is_cooling_down(*key, now):
                logger.info(
                    "%s [%s] %s %s still cooling down (%s left)",
                    request.symbol, mode.value, best.strategy.value,
                    best.direction.value, self._cooldown.remaining(*key, now),
                )
                continue
            self._cooldown.record(*key, now)
            fresh.append(mode)

        return ScanResult(symbol=request.symbol, results=results, fresh=tuple(fresh))

    def scan(
        self,
        requests: Iterable[ScanRequest],
        now: Optional[datetime] = None,
    ) -> list[ScanResult]:
        """Evaluate every request and log a one-line summary.

        Returns:
            One ``ScanResult`` per request, in request order.
        """
        now = now or datetime.now(timezone.utc)
        scans = [self.scan_symbol(request, now) for request in requests]
        actionable = sum(len(s.fresh) for s in scans)
        logger.info(
            "Scanned %d symbol(s) in %d mode(s): %d fresh signal(s)",
            len(scans), len(self.modes), actionable,
        )
        return scans
