"""Tests for label normalization and snapshot parsing."""

import math

import pytest

from forgesignal.strategy.models import (
    Oscillator,
    OscillatorCondition,
    Pullback,
    TimeframeSnapshot,
    Trend,
)
from forgesignal.strategy.normalize import (
    market_snapshot_from_dict,
    normalize_condition,
    normalize_pullback,
    normalize_trend,
    snapshot_from_dict,
)


# ── Labels ───────────────────────────────────────────────────────────────


class TestNormalizeTrend:
    @pytest.mark.parametrize("raw", ["UPTREND", "uptrend", "Up", " up ", "UP_TREND"])
    def test_up_variants(self, raw):
        assert normalize_trend(raw) is Trend.UP

    @pytest.mark.parametrize("raw", ["DOWNTREND", "downtrend", "Down", "down-trend"])
    def test_down_variants(self, raw):
        assert normalize_trend(raw) is Trend.DOWN

    @pytest.mark.parametrize("raw", ["FLAT", "sideways", "", None, 42, "bullish"])
    def test_everything_else_is_flat(self, raw):
        assert normalize_trend(raw) is Trend.FLAT

    def test_enum_passes_through(self):
        assert normalize_trend(Trend.DOWN) is Trend.DOWN


class TestNormalizePullback:
    @pytest.mark.parametrize("raw", ["entryZone", "ENTRY_ZONE", "entry zone", "ENTRY"])
    def test_entry_zone(self, raw):
        assert normalize_pullback(raw) is Pullback.ENTRY_ZONE

    def test_retracing(self):
        assert normalize_pullback("RETRACING") is Pullback.RETRACING

    def test_overextended(self):
        assert normalize_pullback("Overextended") is Pullback.OVEREXTENDED

    @pytest.mark.parametrize("raw", [None, "", "??", "NEAR"])
    def test_unknown_default(self, raw):
        assert normalize_pullback(raw) is Pullback.UNKNOWN


class TestNormalizeCondition:
    @pytest.mark.parametrize("raw,expected", [
        ("OVERBOUGHT", OscillatorCondition.OVERBOUGHT),
        ("oversold", OscillatorCondition.OVERSOLD),
        ("Bullish", OscillatorCondition.BULLISH),
        ("BEARISH", OscillatorCondition.BEARISH),
        ("NEUTRAL", OscillatorCondition.NEUTRAL),
        ("curling", OscillatorCondition.NEUTRAL),
        (None, OscillatorCondition.NEUTRAL),
    ])
    def test_mapping(self, raw, expected):
        assert normalize_condition(raw) is expected


# ── Snapshot parsing ─────────────────────────────────────────────────────


def _make_raw(**overrides) -> dict:
    raw = {
        "price": {"current": 100.0, "high": 101.0, "low": 99.0},
        "ema": {"ema21": 100.5, "ema200": 95.0},
        "oscillator": {"k": 22.5, "d": 30.0, "condition": "OVERSOLD"},
        "trend": "UPTREND",
        "pullbackState": "ENTRY_ZONE",
        "distanceFromEma21Pct": -0.5,
        "structure": {"swingHigh": 104.0, "swingLow": 97.0},
    }
    raw.update(overrides)
    return raw


class TestSnapshotFromDict:
    def test_full_snapshot(self):
        snap = snapshot_from_dict(_make_raw(), "4h")
        assert snap.price.current == 100.0
        assert snap.ema.ema21 == 100.5
        assert snap.oscillator.k == 22.5
        assert snap.oscillator.condition is OscillatorCondition.OVERSOLD
        assert snap.trend is Trend.UP
        assert snap.pullback_state is Pullback.ENTRY_ZONE
        assert snap.distance_from_ema21_pct == -0.5
        assert snap.structure.swing_high == 104.0
        assert snap.structure.swing_low == 97.0

    def test_snake_case_keys(self):
        raw = _make_raw()
        del raw["pullbackState"]
        raw["pullback_state"] = "RETRACING"
        raw["structure"] = {"swing_low": 96.0}
        snap = snapshot_from_dict(raw)
        assert snap.pullback_state is Pullback.RETRACING
        assert snap.structure.swing_low == 96.0
        assert snap.structure.swing_high is None

    def test_missing_sections_are_data_gaps(self):
        snap = snapshot_from_dict({"trend": "DOWNTREND"})
        assert snap.trend is Trend.DOWN
        assert snap.ema.ema21 is None
        assert snap.oscillator.k is None
        assert snap.oscillator.condition is OscillatorCondition.NEUTRAL
        assert snap.pullback_state is Pullback.UNKNOWN

    def test_nan_is_kept_for_evaluators(self):
        snap = snapshot_from_dict(_make_raw(distanceFromEma21Pct=float("nan")))
        assert math.isnan(snap.distance_from_ema21_pct)

    def test_string_number_rejected(self):
        with pytest.raises(TypeError, match="ema21"):
            snapshot_from_dict(_make_raw(ema={"ema21": "100.5"}))

    def test_bool_number_rejected(self):
        with pytest.raises(TypeError, match="oscillator.k"):
            snapshot_from_dict(_make_raw(oscillator={"k": True}))

    def test_section_must_be_mapping(self):
        with pytest.raises(TypeError, match="price"):
            snapshot_from_dict(_make_raw(price=[100.0]))

    def test_not_a_mapping(self):
        with pytest.raises(TypeError):
            snapshot_from_dict([1, 2, 3])


class TestMarketSnapshotFromDict:
    def test_parses_each_timeframe(self):
        snapshot = market_snapshot_from_dict({"4h": _make_raw(), "1h": _make_raw()})
        assert set(snapshot) == {"4h", "1h"}
        assert all(isinstance(s, TimeframeSnapshot) for s in snapshot.values())

    def test_unknown_timeframe(self):
        with pytest.raises(ValueError, match="Unknown timeframe '2h'"):
            market_snapshot_from_dict({"2h": _make_raw()})

    def test_null_timeframe_is_malformed(self):
        with pytest.raises(TypeError):
            market_snapshot_from_dict({"4h": None})

    def test_typed_entries_pass_through(self):
        typed = TimeframeSnapshot()
        assert market_snapshot_from_dict({"1d": typed})["1d"] is typed


class TestSnapshotLabels:
    def test_enum_lookup_normalizes_labels(self):
        assert Trend("UP_TREND") is Trend.UP
        assert Pullback("entryZone") is Pullback.ENTRY_ZONE
        assert OscillatorCondition("Oversold") is OscillatorCondition.OVERSOLD

    def test_string_labels_become_members(self):
        snap = TimeframeSnapshot(
            trend="uptrend",
            pullback_state="ENTRY_ZONE",
            oscillator=Oscillator(k=20.0, condition="oversold"),
        )
        assert snap.trend is Trend.UP
        assert snap.pullback_state is Pullback.ENTRY_ZONE
        assert snap.oscillator.condition is OscillatorCondition.OVERSOLD

    def test_unrecognized_string_labels_use_defaults(self):
        snap = TimeframeSnapshot(trend="sideways", pullback_state="??")
        assert snap.trend is Trend.FLAT
        assert snap.pullback_state is Pullback.UNKNOWN
        assert Oscillator(condition="curling").condition is OscillatorCondition.NEUTRAL

    def test_none_label_is_default(self):
        assert TimeframeSnapshot(trend=None).trend is Trend.FLAT

    def test_enum_members_kept(self):
        assert TimeframeSnapshot(trend=Trend.DOWN).trend is Trend.DOWN

    def test_non_string_label_rejected(self):
        with pytest.raises(TypeError, match="trend"):
            TimeframeSnapshot(trend=1)
        with pytest.raises(TypeError, match="condition"):
            Oscillator(condition=0.5)
