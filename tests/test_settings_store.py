"""Tests for the YAML settings store, the bot overrides read from it, and the decimal/time helpers."""

import dataclasses
import os

import pytest

from perpbot.config.config import Settings
from perpbot.config.settings_store import YamlSettingsStore
from perpbot.core.errors import ValidationError
from perpbot.core.utils import parse_ts_ms, round_fixed, to_decimal_str
from perpbot.main import load_bot_config

from conftest import TEST_PRIVATE_KEY


class TestYamlSettingsStore:
    def test_missing_file_loads_empty(self, tmp_path):
        assert YamlSettingsStore(str(tmp_path / "missing.yaml")).load() == {}

    def test_save_then_load(self, tmp_path):
        store = YamlSettingsStore(str(tmp_path / "nested" / "config.yaml"))
        data = {"symbol": "BTC-PERP", "minSize": 0.001, "intervals": [10, 30]}
        assert store.save(data) is True
        assert store.load() == data
        assert not (tmp_path / "nested" / "config.yaml.tmp").exists()

    def test_save_replaces_whole_file(self, tmp_path):
        store = YamlSettingsStore(str(tmp_path / "config.yaml"))
        store.save({"a": 1, "b": 2})
        store.save({"b": 3})
        assert store.load() == {"b": 3}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert YamlSettingsStore(str(path)).load() == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            YamlSettingsStore(str(path)).load()

    def test_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PB_SETTINGS_FILE", str(tmp_path / "env.yaml"))
        assert YamlSettingsStore().path == tmp_path / "env.yaml"


class TestBotSettingsOverlay:
    @pytest.fixture
    def cfg(self, tmp_path, monkeypatch):
        for key in list(os.environ):
            if key.startswith("PB_"):
                monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("PB_PRIVATE_KEY", TEST_PRIVATE_KEY)
        return dataclasses.replace(Settings.load(), settings_file=str(tmp_path / "bot.yaml"))

    def test_missing_file_uses_environment(self, cfg):
        config = load_bot_config(cfg)
        assert config.symbol == cfg.symbol
        assert config.min_size == cfg.min_size

    def test_file_from_settings_overrides(self, cfg):
        YamlSettingsStore(cfg.settings_file).save({"volume_bot": {"symbol": "ETH-USD", "minSize": 0.002}})
        config = load_bot_config(cfg)
        assert config.symbol == "ETH-USD"
        assert config.min_size == 0.002
        assert config.max_size == cfg.max_size

    def test_bad_section_rejected(self, cfg):
        YamlSettingsStore(cfg.settings_file).save({"volume_bot": ["BTC-USD"]})
        with pytest.raises(ValidationError):
            load_bot_config(cfg)

    def test_unreadable_file_rejected(self, cfg, tmp_path):
        (tmp_path / "bot.yaml").write_text("volume_bot: [unclosed\n")
        with pytest.raises(ValidationError):
            load_bot_config(cfg)


class TestDecimalHelpers:
    @pytest.mark.parametrize("value,expected", [
        (0.1, "0.1"),
        (50000, "50000"),
        (50000.0, "50000"),
        ("0.0100", "0.01"),
        ("1e-5", "0.00001"),
    ])
    def test_to_decimal_str(self, value, expected):
        assert to_decimal_str(value) == expected

    @pytest.mark.parametrize("value", ["", "  ", True, None])
    def test_to_decimal_str_rejects(self, value):
        with pytest.raises((ValueError, TypeError)):
            to_decimal_str(value)

    def test_round_fixed_half_up(self):
        assert round_fixed(0.00125, 4) == "0.0013"
        assert round_fixed(50012.345, 2) == "50012.35"
        assert round_fixed(7, 2) == "7.00"


class TestParseTimestamp:
    def test_iso_with_z(self):
        assert parse_ts_ms("2024-01-01T00:00:00Z") == 1_704_067_200_000

    def test_iso_with_fraction_and_offset(self):
        assert parse_ts_ms("2024-01-01T01:00:00.500+01:00") == 1_704_067_200_500

    def test_epoch_seconds_and_ms(self):
        assert parse_ts_ms(1_704_067_200) == 1_704_067_200_000
        assert parse_ts_ms(1_704_067_200_000) == 1_704_067_200_000
        assert parse_ts_ms("1704067200000") == 1_704_067_200_000

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_unparseable(self, value):
        assert parse_ts_ms(value) is None
