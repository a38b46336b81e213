"""Signal cooldown store: pure bookkeeping, no I/O.

Remembers when a signal was last emitted per (symbol, mode, strategy,
direction) so a caller can avoid re-announcing the same setup every scan.
The store is owned by the caller and passed in; the engine keeps none.
"""

from datetime import datetime, timedelta
from typing import Optional

from forgesignal.strategy.models import Direction, Mode, StrategyKind

CooldownKey = tuple[str, Mode, StrategyKind, Direction]


class SignalCooldown:
    """Tracks last-emission times and answers cooldown queries.

    Args:
        minutes: Quiet period after an emission (0 disables the cooldown).
    """

    def __init__(self, minutes: float = 60.0) -> None:
        if minutes < 0:
            raise ValueError(f"minutes must be non-negative, got {minutes}")
        self._window = timedelta(minutes=minutes)
        self._last_emitted: dict[CooldownKey, datetime] = {}

    # ── Mutation ─────────────────────────────────────────────────────────

    def record(
        self,
        symbol: str,
        mode: Mode,
        kind: StrategyKind,
        direction: Direction,
        at: datetime,
    ) -> None:
        """Record an emission at *at*, dropping entries expired by then."""
        self.prune(at)
        self._last_emitted[(symbol, mode, kind, direction)] = at

    def prune(self, now: datetime) -> int:
        """Forget emissions whose cooldown has elapsed by *now*.

        Returns:
            Number of entries removed.
        """
        expired = [
            key for key, last in self._last_emitted.items()
            if last + self._window <= now
        ]
        for key in expired:
            del self._last_emitted[key]
        return len(expired)

    def clear(self, symbol: Optional[str] = None) -> None:
        """Forget every emission, or only those for *symbol*."""
        if symbol is None:
            self._last_emitted.clear()
            return
        for key in [k for k in self._last_emitted if k[0] == symbol]:
            del self._last_emitted[key]

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def window(self) -> timedelta:
        return self._window

    def last_emitted(
        self, symbol: str, mode: Mode, kind: StrategyKind, direction: Direction,
    ) -> Optional[datetime]:
        return self._last_emitted.get((symbol, mode, kind, direction))

    def remaining(
        self,
        symbol: str,
        mode: Mode,
        kind: StrategyKind,
        direction: Direction,
        now: datetime,
    ) -> timedelta:
        """Time left in the cooldown (zero when not cooling down)."""
        last = self.last_emitted(symbol, mode, kind, direction)
        if last is None:
            return timedelta(0)
        left = last + self._window - now
        return left if left > timedelta(0) else timedelta(0)

    def is_cooling_down(
        self,
        symbol: str,
        mode: Mode,
        kind: StrategyKind,
        direction: Direction,
        now: datetime,
    ) -> bool:
        return self.remaining(symbol, mode, kind, direction, now) > timedelta(0)
