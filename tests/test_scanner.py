"""Tests for SignalScanner: multi-mode scans with a caller-owned cooldown."""

import logging
from datetime import datetime, timedelta, timezone

from forgesignal import scanner as scanner_module
from forgesignal.config import Config
from forgesignal.risk.cooldown import SignalCooldown
from forgesignal.scanner import ScanRequest, SignalScanner
from forgesignal.strategy.models import (
    Direction,
    ExternalSentiment,
    MarketQuality,
    Mode,
    StrategyKind,
    VolumeQuality,
)


_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_raw_tf(trend="UPTREND", condition="NEUTRAL", k=50.0, **extra) -> dict:
    raw = {"trend": trend, "oscillator": {"k": k, "d": k, "condition": condition}}
    raw.update(extra)
    return raw


def _trending_raw() -> dict:
    """Collaborator-shaped snapshot: 4h uptrend sitting on its EMA21."""
    return {
        "1d": _make_raw_tf(),
        "4h": _make_raw_tf(
            pullbackState="ENTRY_ZONE",
            distanceFromEma21Pct=0.0,
            ema={"ema21": 100.0},
            structure={"swingLow": 97.0},
        ),
        "1h": _make_raw_tf(),
        "15m": _make_raw_tf(condition="OVERSOLD", k=15.0),
        "5m": _make_raw_tf(condition="OVERSOLD", k=18.0),
    }


def _flat_raw() -> dict:
    return {tf: _make_raw_tf("FLAT") for tf in ("4h", "1h", "15m")}


def _make_config(modes=(Mode.STANDARD, Mode.AGGRESSIVE), cooldown_minutes=60.0) -> Config:
    return Config(log_level="INFO", modes=modes, cooldown_minutes=cooldown_minutes)


class TestScanRequest:
    def test_from_dict_parses_snapshot(self):
        request = ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0)
        assert request.symbol == "BTCUSDT"
        assert set(request.snapshot) == {"1d", "4h", "1h", "15m", "5m"}
        assert request.snapshot["4h"].ema.ema21 == 100.0
        assert request.market_quality is None

    def test_from_dict_carries_optional_inputs(self):
        quality = MarketQuality(VolumeQuality.LOW)
        sentiment = ExternalSentiment(Direction.LONG, 80.0)
        request = ScanRequest.from_dict(
            "BTCUSDT", _trending_raw(), 100.0,
            market_quality=quality, external_sentiment=sentiment,
        )
        assert request.market_quality is quality
        assert request.external_sentiment is sentiment

    def test_optional_inputs_reach_selector(self, monkeypatch):
        seen = []
        real = scanner_module.evaluate_all

        def spy(*args, **kwargs):
            seen.append((kwargs["market_quality"], kwargs["external_sentiment"]))
            return real(*args, **kwargs)

        monkeypatch.setattr(scanner_module, "evaluate_all", spy)
        quality = MarketQuality(VolumeQuality.HIGH)
        sentiment = ExternalSentiment(Direction.SHORT, 70.0)
        request = ScanRequest.from_dict(
            "BTCUSDT", _trending_raw(), 100.0,
            market_quality=quality, external_sentiment=sentiment,
        )
        SignalScanner(_make_config()).scan_symbol(request, _NOW)
        assert seen == [(quality, sentiment), (quality, sentiment)]


class TestSignalScanner:
    def test_scan_symbol_every_mode(self):
        scanner = SignalScanner(_make_config())
        result = scanner.scan_symbol(ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0), _NOW)
        assert set(result.results) == {Mode.STANDARD, Mode.AGGRESSIVE}
        assert result.fresh == (Mode.STANDARD, Mode.AGGRESSIVE)
        fresh = result.fresh_signals()
        assert fresh[Mode.STANDARD].strategy is StrategyKind.TREND_PRIMARY
        assert fresh[Mode.STANDARD].direction is Direction.LONG

    def test_cooldown_suppresses_repeat(self, caplog):
        scanner = SignalScanner(_make_config(modes=(Mode.STANDARD,), cooldown_minutes=30))
        request = ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0)
        assert scanner.scan_symbol(request, _NOW).fresh == (Mode.STANDARD,)

        with caplog.at_level(logging.INFO, logger="forgesignal.scanner"):
            repeat = scanner.scan_symbol(request, _NOW + timedelta(minutes=10))
        assert repeat.fresh == ()
        assert repeat.results[Mode.STANDARD].best_signal is StrategyKind.TREND_PRIMARY
        assert "cooling down" in caplog.text

        later = scanner.scan_symbol(request, _NOW + timedelta(minutes=30))
        assert later.fresh == (Mode.STANDARD,)

    def test_cooldown_is_per_symbol(self):
        scanner = SignalScanner(_make_config(modes=(Mode.STANDARD,)))
        scanner.scan_symbol(ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0), _NOW)
        other = scanner.scan_symbol(ScanRequest.from_dict("ETHUSDT", _trending_raw(), 100.0), _NOW)
        assert other.fresh == (Mode.STANDARD,)

    def test_uses_injected_cooldown(self):
        cooldown = SignalCooldown(minutes=5)
        scanner = SignalScanner(_make_config(modes=(Mode.STANDARD,)), cooldown=cooldown)
        assert scanner.cooldown is cooldown
        scanner.scan_symbol(ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0), _NOW)
        assert cooldown.last_emitted(
            "BTCUSDT", Mode.STANDARD, StrategyKind.TREND_PRIMARY, Direction.LONG,
        ) == _NOW

    def test_default_cooldown_from_config(self):
        scanner = SignalScanner(_make_config(cooldown_minutes=15))
        assert scanner.cooldown.window == timedelta(minutes=15)

    def test_no_signal_is_never_fresh(self):
        scanner = SignalScanner(_make_config())
        result = scanner.scan_symbol(ScanRequest.from_dict("XRPUSDT", _flat_raw(), 0.5), _NOW)
        assert result.fresh == ()
        assert result.fresh_signals() == {}

    def test_scan_summary(self, caplog):
        scanner = SignalScanner(_make_config(modes=(Mode.STANDARD,)))
        requests = [
            ScanRequest.from_dict("BTCUSDT", _trending_raw(), 100.0),
            ScanRequest.from_dict("XRPUSDT", _flat_raw(), 0.5),
        ]
        with caplog.at_level(logging.INFO, logger="forgesignal.scanner"):
            scans = scanner.scan(requests, _NOW)
        assert [s.symbol for s in scans] == ["BTCUSDT", "XRPUSDT"]
        assert "Scanned 2 symbol(s) in 1 mode(s): 1 fresh signal(s)" in caplog.text
