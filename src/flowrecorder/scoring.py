from __future__ import annotations

from typing import Iterable

from .models import LocatorCandidate
from .selector_rules import is_dynamic

BASE_KIND_SCORES: dict[str, int] = {
    "data-testid": 100,
    "data-test": 95,
    "id": 90,
    "name": 85,
    "aria-label": 80,
    "placeholder": 75,
    "type": 70,
    "role": 65,
    "text": 60,
    "class": 40,
    "css-path": 30,
    "xpath": 20,
}

UNKNOWN_KIND_SCORE = 10
DYNAMIC_PENALTY = 50
LONG_SELECTOR_PENALTY = 20
SHORT_SELECTOR_BONUS = 10
LONG_SELECTOR_THRESHOLD = 100
SHORT_SELECTOR_THRESHOLD = 30


def score(kind: str, value: str) -> int:
    """Stability score for ``value`` scored as ``kind``; may go negative."""
    total = BASE_KIND_SCORES.get(kind, UNKNOWN_KIND_SCORE)
    if is_dynamic(value):
        total -= DYNAMIC_PENALTY
    if len(value) > LONG_SELECTOR_THRESHOLD:
        total -= LONG_SELECTOR_PENALTY
    if len(value) < SHORT_SELECTOR_THRESHOLD:
        total += SHORT_SELECTOR_BONUS
    return total


def sort_candidates(candidates: Iterable[LocatorCandidate]) -> list[LocatorCandidate]:
    # sorted() is stable, so ties keep generation order.
    return sorted(candidates, key=lambda item: -item.score)
