"""Invariant checks for assembled signals."""

import math

from forgesignal.strategy.base import Signal
from forgesignal.strategy.models import Direction


def _finite(value) -> bool:
    return value is not None and math.isfinite(value)


def validate_signal(signal: Signal) -> list[str]:
    """Return the invariant violations of a valid signal (empty when sound).

    NO_TRADE records are checked for their own shape: no direction, zero
    confidence and no price levels.
    """
    errors: list[str] = []

    if not signal.valid:
        if signal.direction is not Direction.NO_TRADE:
            errors.append("NO_TRADE record carries a direction")
        if signal.confidence != 0:
            errors.append("NO_TRADE record carries confidence")
        if signal.entry_zone is not None or signal.stop_loss is not None or signal.targets:
            errors.append("NO_TRADE record carries price levels")
        return errors

    if signal.direction not in (Direction.LONG, Direction.SHORT):
        errors.append(f"invalid direction '{signal.direction.value}'")
        return errors
    if not 0 <= signal.confidence <= 100:
        errors.append(f"confidence {signal.confidence} outside 0-100")

    zone = signal.entry_zone
    if zone is None or not (_finite(zone.min) and _finite(zone.max)):
        errors.append("entry zone missing or non-finite")
        return errors
    if zone.min >= zone.max:
        errors.append(f"entry zone min {zone.min} not below max {zone.max}")
    if not _finite(signal.stop_loss):
        errors.append("stop loss missing or non-finite")
        return errors
    if not _finite(signal.invalidation_level):
        errors.append("invalidation level missing or non-finite")
    if not signal.targets or not all(_finite(t) for t in signal.targets):
        errors.append("targets missing or non-finite")
        return errors

    targets = signal.targets
    if signal.direction is Direction.LONG:
        if signal.stop_loss >= zone.min:
            errors.append(f"long stop {signal.stop_loss} not below entry {zone.min}")
        if targets[0] <= zone.max:
            errors.append(f"long target {targets[0]} not above entry {zone.max}")
        if any(b <= a for a, b in zip(targets, targets[1:])):
            errors.append("long targets not strictly increasing")
    else:
        if signal.stop_loss <= zone.max:
            errors.append(f"short stop {signal.stop_loss} not above entry {zone.max}")
        if targets[0] >= zone.min:
            errors.append(f"short target {targets[0]} not below entry {zone.min}")
        if any(b >= a for a, b in zip(targets, targets[1:])):
            errors.append("short targets not strictly decreasing")
    return errors
