"""Tests for the strategy selector (evaluate_all)."""

import json
import logging
from datetime import datetime, timezone

import pytest

from forgesignal.strategy.models import (
    Direction,
    EmaInfo,
    Mode,
    Oscillator,
    OscillatorCondition,
    Pullback,
    StrategyKind,
    SwingStructure,
    TimeframeSnapshot,
    Trend,
)
from forgesignal.strategy.selector import PRIORITY, evaluate_all


# ── Helpers ──────────────────────────────────────────────────────────────

_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_tf(
    trend: Trend = Trend.UP,
    *,
    pullback: Pullback = Pullback.UNKNOWN,
    dist=None,
    ema=None,
    k=50.0,
    condition=OscillatorCondition.NEUTRAL,
    swing_high=None,
    swing_low=None,
) -> TimeframeSnapshot:
    return TimeframeSnapshot(
        ema=EmaInfo(ema21=ema),
        oscillator=Oscillator(k=k, d=k, condition=condition),
        trend=trend,
        pullback_state=pullback,
        distance_from_ema21_pct=dist,
        structure=SwingStructure(swing_high=swing_high, swing_low=swing_low),
    )


def _trending_snapshot() -> dict:
    """Everything up; 4h pulled back onto its EMA21."""
    return {
        "1d": _make_tf(),
        "4h": _make_tf(pullback=Pullback.ENTRY_ZONE, dist=0.0, ema=100.0, swing_low=97.0),
        "1h": _make_tf(),
        "15m": _make_tf(condition=OscillatorCondition.OVERSOLD, k=15.0),
        "5m": _make_tf(condition=OscillatorCondition.OVERSOLD, k=18.0),
    }


def _downtrend_snapshot() -> dict:
    """Everything down; 4h rallied back onto its EMA21."""
    return {
        "1d": _make_tf(Trend.DOWN),
        "4h": _make_tf(
            Trend.DOWN, pullback=Pullback.ENTRY_ZONE, dist=0.0, ema=100.0, swing_high=103.0,
        ),
        "1h": _make_tf(Trend.DOWN),
        "15m": _make_tf(Trend.DOWN, condition=OscillatorCondition.OVERBOUGHT, k=85.0),
        "5m": _make_tf(Trend.DOWN, condition=OscillatorCondition.OVERBOUGHT, k=82.0),
    }


def _labelled_trending_snapshot() -> dict:
    """Same as ``_trending_snapshot`` with producer label strings."""
    return {
        "1d": _make_tf("UPTREND"),
        "4h": _make_tf(
            "uptrend", pullback="ENTRY_ZONE", dist=0.0, ema=100.0, swing_low=97.0,
        ),
        "1h": _make_tf("Uptrend"),
        "15m": _make_tf("UPTREND", condition="OVERSOLD", k=15.0),
        "5m": _make_tf("UPTREND", condition="oversold", k=18.0),
    }


def _flat_primary_snapshot(k_1h: float = 50.0, osc=OscillatorCondition.NEUTRAL) -> dict:
    return {
        "4h": _make_tf(
            Trend.FLAT, pullback=Pullback.ENTRY_ZONE, dist=0.0, ema=100.0,
            swing_low=97.0, condition=osc,
        ),
        "1h": _make_tf(k=k_1h, condition=osc),
        "15m": _make_tf(),
    }


def _all_flat_snapshot() -> dict:
    return {tf: _make_tf(Trend.FLAT) for tf in ("1d", "4h", "1h", "15m", "5m", "3m")}


def _valid_kinds(result) -> set:
    return {kind for kind, signal in result.strategies.items() if signal.valid}


# ── Selection ────────────────────────────────────────────────────────────


class TestEvaluateAll:
    def test_trend_primary_wins_in_standard(self):
        result = evaluate_all("BTCUSDT", _trending_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        assert result.best_signal is StrategyKind.TREND_PRIMARY
        best = result.best
        assert best.direction is Direction.LONG
        assert best.confidence == 83
        assert best.stop_loss == pytest.approx(96.709)
        assert best.timestamp == _NOW.isoformat()
        assert result.htf_bias.direction is Direction.LONG
        assert result.htf_bias.confidence == 100
        assert not result.override_used

    def test_trend_primary_short(self):
        result = evaluate_all("BTCUSDT", _downtrend_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        assert result.htf_bias.direction is Direction.SHORT
        assert result.htf_bias.confidence == 100
        assert result.best_signal is StrategyKind.TREND_PRIMARY
        best = result.best
        assert best.direction is Direction.SHORT
        assert best.confidence == 83
        assert best.entry_zone.min == pytest.approx(99.8)
        assert best.entry_zone.max == pytest.approx(100.4)
        assert best.stop_loss == pytest.approx(103.309)
        assert best.stop_loss > best.entry_zone.max
        assert best.targets == pytest.approx((96.891, 93.682))
        assert not result.override_used

    def test_label_strings_match_enum_snapshot(self):
        labelled = evaluate_all("X", _labelled_trending_snapshot(), 100.0, Mode.AGGRESSIVE, now=_NOW)
        typed = evaluate_all("X", _trending_snapshot(), 100.0, Mode.AGGRESSIVE, now=_NOW)
        assert labelled.best_signal is StrategyKind.TREND_PRIMARY
        assert json.dumps(labelled.to_dict()) == json.dumps(typed.to_dict())

    def test_label_strings_with_flat_primary_and_no_bias(self):
        snapshot = {tf: _make_tf("FLAT") for tf in ("4h", "1h", "15m")}
        for mode in Mode:
            result = evaluate_all("X", snapshot, 100.0, mode, now=_NOW)
            assert result.best is None
            assert result.htf_bias.direction is Direction.NEUTRAL

    def test_every_kind_reported(self):
        standard = evaluate_all("X", _trending_snapshot(), 100.0, "standard", now=_NOW)
        aggressive = evaluate_all("X", _trending_snapshot(), 100.0, "aggressive", now=_NOW)
        assert set(standard.strategies) == set(PRIORITY[Mode.STANDARD])
        assert set(aggressive.strategies) == set(PRIORITY[Mode.AGGRESSIVE])

    def test_no_trade_records_carry_reason(self):
        result = evaluate_all("X", _trending_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        swing = result.strategies[StrategyKind.SWING]
        assert not swing.valid
        assert swing.direction is Direction.NO_TRADE
        assert swing.confidence == 0
        assert swing.reason == "missing timeframe data: 3d"
        assert swing.timestamp == _NOW.isoformat()

    def test_all_flat_has_no_best(self):
        for mode in Mode:
            result = evaluate_all("X", _all_flat_snapshot(), 100.0, mode, now=_NOW)
            assert result.best_signal is None
            assert result.best is None
            assert result.valid_signals == []
            assert result.htf_bias.direction is Direction.NEUTRAL

    def test_aggressive_accepts_everything_standard_accepts(self):
        for snapshot in (_trending_snapshot(), _flat_primary_snapshot(), _all_flat_snapshot()):
            standard = evaluate_all("X", snapshot, 100.0, Mode.STANDARD, now=_NOW)
            aggressive = evaluate_all("X", snapshot, 100.0, Mode.AGGRESSIVE, now=_NOW)
            assert _valid_kinds(standard) <= _valid_kinds(aggressive)

    def test_deterministic(self):
        first = evaluate_all("X", _trending_snapshot(), 100.0, Mode.AGGRESSIVE, now=_NOW)
        second = evaluate_all("X", _trending_snapshot(), 100.0, Mode.AGGRESSIVE, now=_NOW)
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_result_is_read_only(self):
        result = evaluate_all("X", _trending_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        with pytest.raises(TypeError):
            result.strategies[StrategyKind.SWING] = result.best

    def test_to_dict_shape(self):
        data = evaluate_all("ETHUSDT", _trending_snapshot(), 100.0, Mode.STANDARD, now=_NOW).to_dict()
        assert data["symbol"] == "ETHUSDT"
        assert data["bestSignal"] == "trend_primary"
        assert data["htfBias"]["direction"] == "long"
        assert data["strategies"]["swing"]["direction"] == "NO_TRADE"


# ── Override path ────────────────────────────────────────────────────────


class TestOverride:
    def test_flat_primary_rescued_by_bias(self):
        result = evaluate_all("X", _flat_primary_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        assert result.htf_bias.source == "1h"
        assert result.best_signal is StrategyKind.TREND_PRIMARY
        assert result.best.confidence == 78  # 71.0625 * 1.1
        assert result.override_used
        assert result.override_notes
        assert result.best.override_notes == result.override_notes

    def test_bias_at_minimum_confidence(self):
        snapshot = _flat_primary_snapshot(osc=OscillatorCondition.BEARISH)
        result = evaluate_all("X", snapshot, 100.0, Mode.STANDARD, now=_NOW)
        assert result.htf_bias.direction is Direction.LONG
        assert result.htf_bias.confidence == 60
        assert result.best_signal is StrategyKind.TREND_PRIMARY
        assert result.override_used

    def test_stretched_momentum_blocks_override(self):
        result = evaluate_all("X", _flat_primary_snapshot(k_1h=70.0), 100.0, Mode.STANDARD, now=_NOW)
        assert result.best_signal is None
        assert not result.override_used
        assert result.override_notes == ()


# ── Errors ───────────────────────────────────────────────────────────────


class TestErrors:
    def test_unknown_timeframe(self):
        snapshot = _trending_snapshot()
        snapshot["2h"] = _make_tf()
        with pytest.raises(ValueError, match="Unknown timeframe '2h'"):
            evaluate_all("X", snapshot, 100.0, Mode.STANDARD)

    def test_snapshot_not_a_mapping(self):
        with pytest.raises(TypeError, match="snapshot"):
            evaluate_all("X", [_make_tf()], 100.0, Mode.STANDARD)

    def test_untyped_entry(self):
        with pytest.raises(TypeError, match="snapshot\\[4h\\]"):
            evaluate_all("X", {"4h": {"trend": "UPTREND"}}, 100.0, Mode.STANDARD)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown mode"):
            evaluate_all("X", _trending_snapshot(), 100.0, "reckless")

    def test_price_must_be_number(self):
        with pytest.raises(TypeError, match="current_price"):
            evaluate_all("X", _trending_snapshot(), "100", Mode.STANDARD)

    def test_failed_validation_becomes_no_trade(self, monkeypatch, caplog):
        monkeypatch.setattr(
            "forgesignal.strategy.selector.validate_signal", lambda signal: ["stop inside zone"],
        )
        with caplog.at_level(logging.WARNING, logger="forgesignal.selector"):
            result = evaluate_all("X", _trending_snapshot(), 100.0, Mode.STANDARD, now=_NOW)
        assert result.best_signal is None
        primary = result.strategies[StrategyKind.TREND_PRIMARY]
        assert primary.reason == "failed validation: stop inside zone"
        assert "failed validation" in caplog.text
