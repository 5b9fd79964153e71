from __future__ import annotations

import sys

_MISSING_BROWSER_ERROR_HINTS = (
    "executable doesn't exist",
    "executable does not exist",
    "download new browsers",
    "playwright install",
    "could not find browser",
)

_CLOSED_TARGET_HINTS = (
    "has been closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "target closed",
)


def _is_missing_browser_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in _MISSING_BROWSER_ERROR_HINTS)


def is_closed_target_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in _CLOSED_TARGET_HINTS)


def missing_browser_message(browser: str) -> str:
    return f"{browser} is not installed. Run: python -m playwright install {browser}"


def normalize_url(raw_url: str) -> str:
    url = (raw_url or "").strip()
    if not url:
        return ""
    if url.startswith(("http://", "https://", "file://", "about:")):
        return url
    return f"https://{url}"


def ensure_supported_python() -> None:
    if sys.version_info < (3, 11):
        raise SystemExit(
            "flowrecorder requires Python 3.11+. "
            f"Current interpreter: {sys.executable} (Python {sys.version.split()[0]})"
        )
