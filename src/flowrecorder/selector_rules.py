from __future__ import annotations

import re
from typing import Iterable

# Order matters only for readability; any single hit marks the value dynamic.
_DYNAMIC_VALUE_PATTERNS = (
    re.compile(r"\d{13,}"),
    re.compile(r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}", re.IGNORECASE),
    re.compile(r"^[a-z0-9]{20,}$", re.IGNORECASE),
    re.compile(r"(session|token|temp|tmp|random|guid|uuid)", re.IGNORECASE),
    re.compile(r"\d{10,}"),
    re.compile(r"-\d+-"),
    re.compile(r"^[A-Z][a-z0-9]{5}$"),
    re.compile(r"^_[a-zA-Z0-9]{5,}$"),
    re.compile(r"^[a-z]{1,2}[A-Z][a-z0-9]{4,}$"),
    re.compile(r"^[a-zA-Z]{1,3}\d{3,}$"),
    re.compile(r"^[a-zA-Z0-9]{6}$"),
    re.compile(r"^[A-Z]{2,}[a-z0-9]{4,}$"),
)

_STATE_CLASS_PATTERN = re.compile(
    r"^(active|hover|focus|selected|disabled|open|closed|visible|hidden)$",
    re.IGNORECASE,
)

_CSS_IDENTIFIER_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")


def is_dynamic(value: str | None) -> bool:
    """Return True when ``value`` looks machine generated.

    Timestamps, UUIDs, opaque tokens, session-ish keywords, numeric ids
    embedded between hyphens and short minified identifiers all count.
    """
    if not value:
        return False
    text = str(value)
    return any(pattern.search(text) for pattern in _DYNAMIC_VALUE_PATTERNS)


def has_minified_class_list(class_string: str | None) -> bool:
    if not class_string:
        return False
    classes = [token for token in str(class_string).split() if token]
    if not classes:
        return False
    minified = sum(1 for token in classes if is_dynamic(token))
    return minified > len(classes) * 0.5


def is_state_class(token: str) -> bool:
    return bool(_STATE_CLASS_PATTERN.match(token.strip()))


def stable_classes(classes: Iterable[str]) -> list[str]:
    return [token for token in classes if token and not is_state_class(token) and not is_dynamic(token)]


def first_non_dynamic_class(classes: Iterable[str]) -> str | None:
    return next((token for token in classes if token and not is_dynamic(token)), None)


def normalize_space(value: str | None, limit: int = 200) -> str:
    if not value:
        return ""
    compact = re.sub(r"\s+", " ", str(value)).strip()
    return compact[:limit] if compact else ""


def is_css_identifier(value: str) -> bool:
    return bool(_CSS_IDENTIFIER_PATTERN.fullmatch(value))


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def escape_css_identifier(value: str) -> str:
    escaped: list[str] = []
    for char in value:
        if char.isalnum() or char in ("-", "_"):
            escaped.append(char)
        else:
            escaped.append(f"\\{ord(char):x} ")
    return "".join(escaped)


def xpath_literal(value: str) -> str:
    # Double quotes first so expressions nest inside single-quoted source strings.
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    pieces = value.split("'")
    quoted = [f"'{piece}'" for piece in pieces]
    return "concat(" + ", \"'\", ".join(quoted) + ")"


def escape_single_quoted(value: str) -> str:
    """Escape for a single-quoted JavaScript or Python string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def escape_double_quoted(value: str) -> str:
    """Escape for a double-quoted Java string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
