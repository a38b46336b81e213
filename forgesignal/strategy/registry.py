"""Strategy registry: maps strategy kinds to evaluator classes.

Used by the selector to instantiate a fresh evaluator per evaluation.
"""

from typing import Union

from forgesignal.strategy.aggressive import AggroMicroScalpStrategy, AggroScalpStrategy
from forgesignal.strategy.base import StrategyProtocol
from forgesignal.strategy.micro_scalp import MicroScalpStrategy
from forgesignal.strategy.models import Mode, StrategyKind
from forgesignal.strategy.scalp import ScalpStrategy
from forgesignal.strategy.swing import SwingStrategy
from forgesignal.strategy.trend_primary import TrendPrimaryStrategy
from forgesignal.strategy.trend_rider import TrendRiderStrategy


STRATEGY_REGISTRY: dict[StrategyKind, type] = {
    StrategyKind.SWING: SwingStrategy,
    StrategyKind.TREND_PRIMARY: TrendPrimaryStrategy,
    StrategyKind.TREND_RIDER: TrendRiderStrategy,
    StrategyKind.SCALP: ScalpStrategy,
    StrategyKind.MICRO_SCALP: MicroScalpStrategy,
    StrategyKind.AGGRO_SCALP: AggroScalpStrategy,
    StrategyKind.AGGRO_MICRO_SCALP: AggroMicroScalpStrategy,
}

BASE_KINDS: tuple[StrategyKind, ...] = (
    StrategyKind.SWING,
    StrategyKind.TREND_PRIMARY,
    StrategyKind.TREND_RIDER,
    StrategyKind.SCALP,
    StrategyKind.MICRO_SCALP,
)

AGGRESSIVE_KINDS: tuple[StrategyKind, ...] = (
    StrategyKind.AGGRO_SCALP,
    StrategyKind.AGGRO_MICRO_SCALP,
)


def kinds_for_mode(mode: Mode) -> tuple[StrategyKind, ...]:
    if mode is Mode.AGGRESSIVE:
        return BASE_KINDS + AGGRESSIVE_KINDS
    return BASE_KINDS


def get_strategy(kind: Union[StrategyKind, str]) -> StrategyProtocol:
    """Look up and instantiate an evaluator by kind.

    Raises ``KeyError`` if the kind is not registered.
    """
    key = kind
    if not isinstance(kind, StrategyKind):
        key = next((k for k in StrategyKind if k.value == kind), None)
    if key not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{kind}'. "
            f"Available: {', '.join(k.value for k in STRATEGY_REGISTRY)}"
        )
    return STRATEGY_REGISTRY[key]()
