"""Tests for forgesignal.config: environment variable loading and validation."""

import logging

import pytest

from forgesignal.config import Config, load_config, setup_logging
from forgesignal.strategy.models import Mode


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure ForgeSignal env vars are cleared between tests."""
    for var in ["LOG_LEVEL", "SIGNAL_MODES", "SIGNAL_COOLDOWN_MINUTES"]:
        monkeypatch.delenv(var, raising=False)


def _load(tmp_path) -> Config:
    # Non-existent env_path so load_dotenv doesn't pick up a real .env file
    return load_config(env_path=str(tmp_path / "missing.env"))


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = _load(tmp_path)
        assert cfg.log_level == "INFO"
        assert cfg.modes == (Mode.STANDARD, Mode.AGGRESSIVE)
        assert cfg.cooldown_minutes == 60.0

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SIGNAL_MODES", "aggressive")
        monkeypatch.setenv("SIGNAL_COOLDOWN_MINUTES", "15")
        cfg = _load(tmp_path)
        assert cfg.log_level == "DEBUG"
        assert cfg.modes == (Mode.AGGRESSIVE,)
        assert cfg.cooldown_minutes == 15.0

    def test_modes_deduplicated_in_order(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_MODES", " aggro , standard,aggressive,")
        assert _load(tmp_path).modes == (Mode.AGGRESSIVE, Mode.STANDARD)

    def test_invalid_mode(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_MODES", "standard,turbo")
        with pytest.raises(ValueError, match="SIGNAL_MODES"):
            _load(tmp_path)

    def test_empty_modes(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_MODES", " , ")
        with pytest.raises(ValueError, match="at least one mode"):
            _load(tmp_path)

    def test_cooldown_not_a_number(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_COOLDOWN_MINUTES", "an hour")
        with pytest.raises(ValueError, match="SIGNAL_COOLDOWN_MINUTES"):
            _load(tmp_path)

    def test_cooldown_negative(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGNAL_COOLDOWN_MINUTES", "-5")
        with pytest.raises(ValueError, match="non-negative"):
            _load(tmp_path)

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SIGNAL_MODES=standard\nSIGNAL_COOLDOWN_MINUTES=30\n")
        cfg = load_config(env_path=str(env_file))
        assert cfg.modes == (Mode.STANDARD,)
        assert cfg.cooldown_minutes == 30.0

    def test_config_is_frozen(self, tmp_path):
        cfg = _load(tmp_path)
        with pytest.raises(AttributeError):
            cfg.log_level = "DEBUG"


class TestSetupLogging:
    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        setup_logging("chatty")
        assert captured["level"] == logging.INFO
        assert "%(name)s" in captured["format"]

    def test_level_by_name(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        setup_logging("warning")
        assert captured["level"] == logging.WARNING
