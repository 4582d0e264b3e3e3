from __future__ import annotations

import json
import os
from pathlib import Path

from fleece.config import FleeceSettings, GenerationConfig, SettingsSource, load_settings
from fleece.constants import DEFAULT_CONNECT_WINDOW, DEFAULT_MARKER_STRIP_WIDTH, DEFAULT_URL
from fleece.paths import config_dir, settings_file


def _write_settings(path: Path, section: dict) -> Path:
    path.write_text(json.dumps({"fleece": section, "other": {"url": "ignored"}}), encoding="utf-8")
    return path


def test_get_setting_reads_section_and_reports_missing_as_false(tmp_path: Path):
    source = SettingsSource(_write_settings(tmp_path / "settings.json", {"model": "alpaca.13b", "url": ""}), load_env=False)
    assert source.get_setting("model") == "alpaca.13b"
    assert source.get_setting("url") is False
    assert source.get_setting("nope") is False


def test_environment_overrides_settings_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("FLEECE_MODEL", "llama.30b")
    source = SettingsSource(_write_settings(tmp_path / "settings.json", {"model": "alpaca.13b"}), load_env=False)
    assert source.get_setting("model") == "llama.30b"


def test_env_file_in_config_dir_is_loaded():
    (config_dir() / ".env").write_text("FLEECE_URL=ws://from-env:9000\n", encoding="utf-8")
    try:
        source = SettingsSource()
        assert source.get_setting("url") == "ws://from-env:9000"
    finally:
        os.environ.pop("FLEECE_URL", None)


def test_unreadable_settings_file_is_ignored(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert SettingsSource(path, load_env=False).get_setting("model") is False


def test_load_settings_defaults():
    settings = load_settings(SettingsSource(load_env=False))
    assert settings == FleeceSettings()
    assert settings.url == DEFAULT_URL
    assert settings.marker_strip_width == DEFAULT_MARKER_STRIP_WIDTH
    assert str(settings_file()).startswith(str(config_dir()))


def test_load_settings_coerces_values(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("FLEECE_STARTUP_DELAY", "2.5")
    path = _write_settings(tmp_path / "settings.json", {"model": "alpaca.7b", "terminal_name": "dalai"})
    settings = load_settings(SettingsSource(path, load_env=False))
    assert settings.startup_delay == 2.5
    assert settings.terminal_name == "dalai"
    assert settings.generation_config().model == "alpaca.7b"


def test_invalid_setting_falls_back_to_its_own_default(tmp_path: Path):
    path = _write_settings(tmp_path / "settings.json", {"startup_delay": -1, "model": "alpaca.7b"})
    settings = load_settings(SettingsSource(path, load_env=False))
    assert settings.startup_delay == FleeceSettings().startup_delay
    assert settings.model == "alpaca.7b"


def test_bad_environment_value_keeps_valid_file_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("FLEECE_STARTUP_DELAY", "abc")
    monkeypatch.setenv("FLEECE_CONNECT_WINDOW", "-5")
    path = _write_settings(tmp_path / "settings.json", {"model": "llama.13b", "terminal_name": "dalai"})
    settings = load_settings(SettingsSource(path, load_env=False))
    assert settings.model == "llama.13b"
    assert settings.terminal_name == "dalai"
    assert settings.startup_delay == 1.0
    assert settings.connect_window == DEFAULT_CONNECT_WINDOW


def test_generation_config_baseline():
    assert GenerationConfig().model_dump() == {
        "n_predict": 50,
        "top_k": 20,
        "top_p": 0.9,
        "repeat_last_n": 5,
        "repeat_penalty": 1.5,
        "temp": 0.5,
        "model": "llama.7b",
        "threads": 4,
    }
