"""ForgeSignal: application configuration.

Loads .env variables into a typed config object.  Engine thresholds are
versioned with the code and are not configurable here; only the scanner's
surroundings are.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from forgesignal.strategy.models import Mode
from forgesignal.strategy.thresholds import coerce_mode

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    log_level: str
    modes: tuple[Mode, ...]
    cooldown_minutes: float


def _parse_modes(raw: str) -> tuple[Mode, ...]:
    modes: list[Mode] = []
    for name in (part.strip() for part in raw.split(",")):
        if not name:
            continue
        try:
            mode = coerce_mode(name)
        except ValueError as exc:
            raise ValueError(f"Invalid SIGNAL_MODES entry: {exc}") from exc
        if mode not in modes:
            modes.append(mode)
    if not modes:
        raise ValueError("SIGNAL_MODES must name at least one mode")
    return tuple(modes)


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    raw_cooldown = os.environ.get("SIGNAL_COOLDOWN_MINUTES", "60")
    try:
        cooldown = float(raw_cooldown)
    except ValueError as exc:
        raise ValueError(
            f"SIGNAL_COOLDOWN_MINUTES must be a number, got '{raw_cooldown}'"
        ) from exc
    if cooldown < 0:
        raise ValueError(
            f"SIGNAL_COOLDOWN_MINUTES must be non-negative, got {cooldown}"
        )

    return Config(
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        modes=_parse_modes(os.environ.get("SIGNAL_MODES", "standard,aggressive")),
        cooldown_minutes=cooldown,
    )


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging in the ForgeSignal format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
