from pathlib import Path

import pytest

from flowrecorder.settings import RecorderSettings, load_settings, merge_cli_overrides, save_settings


def test_settings_roundtrip(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.json"
    original = RecorderSettings(
        url="https://example.org/login",
        browser="firefox",
        output_dir="/tmp/recordings",
        debounce_ms=750,
        headless=True,
    )

    ok, error = save_settings(original, config_path)

    assert ok is True
    assert error is None
    assert load_settings(config_path) == original


def test_load_is_tolerant(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    assert load_settings(config_path) is None

    config_path.write_text("{invalid", encoding="utf-8")
    assert load_settings(config_path) is None

    config_path.write_text("[]", encoding="utf-8")
    assert load_settings(config_path) is None

    config_path.write_text('{"browser": "opera", "debounce_ms": "soon"}', encoding="utf-8")
    loaded = load_settings(config_path)
    assert loaded == RecorderSettings()


def test_cli_overrides_win_over_stored_values() -> None:
    stored = RecorderSettings(url="https://stored.example", browser="webkit", headless=True)

    merged = merge_cli_overrides(stored, {"url": "https://cli.example", "browser": None, "headless": None, "unknown": 1})

    assert merged.url == "https://cli.example"
    assert merged.browser == "webkit"
    assert merged.headless is True
    assert stored.url == "https://stored.example"


def test_cli_overrides_reject_unknown_browser() -> None:
    with pytest.raises(ValueError):
        merge_cli_overrides(None, {"browser": "netscape"})
