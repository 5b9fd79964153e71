from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
import json
from pathlib import Path
from typing import Any, Mapping

from .storage import write_text_atomic

CONFIG_DIR = Path.home() / ".flowrecorder"
CONFIG_PATH = CONFIG_DIR / "config.json"

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")
DEFAULT_DEBOUNCE_MS = 1000
DEFAULT_POLL_INTERVAL_MS = 500


@dataclass(slots=True)
class RecorderSettings:
    url: str = ""
    browser: str = "chromium"
    replay_path: str = ""
    output_dir: str = "."
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    headless: bool = False


def load_settings(config_path: Path | None = None) -> RecorderSettings | None:
    path = config_path or CONFIG_PATH
    if not path.exists() or not path.is_file():
        return None

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, TypeError):
        return None

    if not isinstance(payload, dict):
        return None

    browser = str(payload.get("browser", "chromium") or "chromium").lower()
    return RecorderSettings(
        url=str(payload.get("url", "") or ""),
        browser=browser if browser in SUPPORTED_BROWSERS else "chromium",
        replay_path=str(payload.get("replay_path", "") or ""),
        output_dir=str(payload.get("output_dir", ".") or "."),
        debounce_ms=_non_negative_int(payload.get("debounce_ms"), DEFAULT_DEBOUNCE_MS),
        poll_interval_ms=_non_negative_int(payload.get("poll_interval_ms"), DEFAULT_POLL_INTERVAL_MS) or 1,
        headless=bool(payload.get("headless", False)),
    )


def save_settings(settings: RecorderSettings, config_path: Path | None = None) -> tuple[bool, str | None]:
    path = config_path or CONFIG_PATH
    payload = json.dumps(asdict(settings), ensure_ascii=True, indent=2, sort_keys=True)
    return write_text_atomic(path, payload, "recorder settings")


def merge_cli_overrides(settings: RecorderSettings | None, overrides: Mapping[str, Any]) -> RecorderSettings:
    """Apply command-line values on top of the stored settings.

    ``None`` means the flag was not given and keeps the stored value.
    """
    base = settings or RecorderSettings()
    known = {item.name for item in fields(RecorderSettings)}
    changes = {key: value for key, value in overrides.items() if key in known and value is not None}
    merged = replace(base, **changes)
    if merged.browser not in SUPPORTED_BROWSERS:
        raise ValueError(f"Unsupported browser: {merged.browser}. Choose one of {', '.join(SUPPORTED_BROWSERS)}.")
    return merged


def _non_negative_int(raw: object, default: int) -> int:
    if isinstance(raw, bool):
        return default
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return max(0, value)
