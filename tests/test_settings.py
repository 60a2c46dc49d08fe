"""Tests for settings persistence and environment config."""

import pytest
from decimal import Decimal
from pathlib import Path

from milk_ledger.config import DEFAULT_ALLOWED_ORIGINS, load_config
from milk_ledger.settings import SettingsStore


class TestSettingsStore:
    def test_defaults_without_file(self):
        settings = SettingsStore().current
        assert settings.milk_rate == Decimal("0")
        assert settings.default_starting_milk is None

    def test_update_and_reload(self, tmp_path):
        path = tmp_path / "settings.json"
        store = SettingsStore(path)
        store.update(milk_rate=Decimal("60"))
        store.update(default_starting_milk=Decimal("450"))

        reloaded = SettingsStore(path).current
        assert reloaded.milk_rate == Decimal("60")
        assert reloaded.default_starting_milk == Decimal("450")

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{oops", encoding="utf-8")
        assert SettingsStore(path).current.milk_rate == Decimal("0")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            SettingsStore().update(milk_rate=Decimal("-5"))


class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MILK_LEDGER_DATA_DIR", raising=False)
        monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)
        config = load_config()
        assert config.data_dir == Path("data")
        assert config.entries_path == Path("data") / "entries.json"
        assert config.allowed_origins == DEFAULT_ALLOWED_ORIGINS
        assert not config.allow_all_origins

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MILK_LEDGER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
        config = load_config()
        assert config.settings_path == tmp_path / "settings.json"
        assert config.allowed_origins == ["https://a.example", "https://b.example"]

    def test_wildcard(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "*")
        assert load_config().allow_all_origins
