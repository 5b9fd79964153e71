from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Mapping

from .models import ExpressionKind, LocatorCandidate, MatchOracle

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)


class PageMatchOracle:
    """Counts live matches on a Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def match_count(self, kind: ExpressionKind, expression: str) -> int:
        text = str(expression or "").strip()
        if not text:
            return 0
        if kind == "xpath":
            return self.page.locator(f"xpath={text}").count()
        return len(self.page.query_selector_all(text))


@dataclass(slots=True)
class StaticMatchOracle:
    """Answers from a fixed table; unknown expressions match ``default`` nodes.

    Expressions listed in ``invalid`` raise, which mimics a browser rejecting
    malformed CSS.
    """

    counts: Mapping[str, int] = field(default_factory=dict)
    default: int = 0
    invalid: frozenset[str] = frozenset()

    def match_count(self, kind: ExpressionKind, expression: str) -> int:
        if expression in self.invalid:
            raise ValueError(f"Invalid {kind} expression: {expression}")
        return int(self.counts.get(expression, self.default))


def safe_match_count(oracle: MatchOracle | None, kind: ExpressionKind, expression: str | None) -> int | None:
    """Match count or None when there is no oracle or it fails."""
    if oracle is None or not expression:
        return None
    try:
        return max(0, int(oracle.match_count(kind, expression)))
    except Exception as exc:
        logger.debug("Match count unavailable for %s %r: %s", kind, expression, exc)
        return None


def candidate_match_count(oracle: MatchOracle | None, candidate: LocatorCandidate) -> int | None:
    if candidate.css:
        return safe_match_count(oracle, "css", candidate.css)
    if candidate.xpath:
        return safe_match_count(oracle, "xpath", candidate.xpath)
    return None
