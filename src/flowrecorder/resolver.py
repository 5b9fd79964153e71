from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Sequence

from .models import ElementSnapshot, LocatorCandidate, MatchOracle
from .selector_rules import (
    escape_css_string,
    is_css_identifier,
    is_dynamic,
    stable_classes,
)
from .validation import candidate_match_count, safe_match_count

ResolutionStrategy = Literal["top", "ancestor-css", "alternate", "positional-xpath"]

ANCESTOR_WALK_DEPTH = 4


@dataclass(slots=True)
class UsedLocatorRegistry:
    """Final expressions already handed out within one scan batch."""

    _used: set[str] = field(default_factory=set)

    def mark(self, expression: str | None) -> None:
        if expression:
            self._used.add(expression)

    def is_used(self, expression: str | None) -> bool:
        return bool(expression) and expression in self._used

    def __contains__(self, expression: object) -> bool:
        return expression in self._used

    def __len__(self) -> int:
        return len(self._used)


@dataclass(frozen=True, slots=True)
class Resolution:
    candidate: LocatorCandidate
    strategy: ResolutionStrategy
    match_count: int | None

    @property
    def expression(self) -> str:
        return self.candidate.css or self.candidate.xpath or self.candidate.framework or ""


def resolve(
    snapshot: ElementSnapshot,
    candidates: Sequence[LocatorCandidate],
    oracle: MatchOracle | None = None,
    registry: UsedLocatorRegistry | None = None,
) -> Resolution:
    """Pick a locator for ``snapshot`` that matches exactly one node.

    ``candidates`` must be sorted best first. The top candidate is kept when it
    is unique and unused; otherwise an ancestor-scoped CSS path, then another
    unique candidate, then a positional XPath are tried. The framework
    shorthand of the top candidate survives every rewrite.
    """
    used = registry if registry is not None else UsedLocatorRegistry()

    if candidates:
        top = candidates[0]
        count = top.match_count if top.match_count is not None else candidate_match_count(oracle, top)
        key = top.css or top.xpath or top.framework
        if count == 1 and not used.is_used(key):
            used.mark(key)
            return Resolution(candidate=_drop_unverified_xpath(top, oracle), strategy="top", match_count=1)
        framework = top.framework
        base_score = top.score
    else:
        framework = None
        base_score = 0

    ancestor_css = build_ancestor_css(snapshot)
    if ancestor_css and not used.is_used(ancestor_css):
        if safe_match_count(oracle, "css", ancestor_css) == 1:
            used.mark(ancestor_css)
            rebuilt = LocatorCandidate(
                kind="cssPath",
                css=ancestor_css,
                framework=framework,
                score=base_score,
                match_count=1,
            )
            return Resolution(candidate=rebuilt, strategy="ancestor-css", match_count=1)

    for alternate in candidates[1:]:
        if not alternate.css or used.is_used(alternate.css):
            continue
        count = alternate.match_count
        if count is None:
            count = safe_match_count(oracle, "css", alternate.css)
        if count != 1:
            continue
        used.mark(alternate.css)
        rebuilt = LocatorCandidate(
            kind=alternate.kind,
            css=alternate.css,
            xpath=_verified_xpath(alternate, oracle),
            framework=framework or alternate.framework,
            score=alternate.score,
            match_count=1,
            dynamic_warning=alternate.dynamic_warning,
        )
        return Resolution(candidate=rebuilt, strategy="alternate", match_count=1)

    xpath = build_positional_xpath(snapshot)
    used.mark(xpath)
    rebuilt = LocatorCandidate(
        kind="xpath-basic",
        xpath=xpath,
        framework=framework,
        score=base_score,
        match_count=1,
    )
    return Resolution(candidate=rebuilt, strategy="positional-xpath", match_count=1)


def _verified_xpath(candidate: LocatorCandidate, oracle: MatchOracle | None) -> str | None:
    """The xpath sibling of a css-counted candidate, kept only if it is unique too."""
    if not candidate.css or not candidate.xpath or oracle is None:
        return candidate.xpath
    if safe_match_count(oracle, "xpath", candidate.xpath) == 1:
        return candidate.xpath
    return None


def _drop_unverified_xpath(candidate: LocatorCandidate, oracle: MatchOracle | None) -> LocatorCandidate:
    xpath = _verified_xpath(candidate, oracle)
    if xpath == candidate.xpath:
        return candidate
    return replace(candidate, xpath=xpath)


def build_ancestor_css(snapshot: ElementSnapshot, max_depth: int = ANCESTOR_WALK_DEPTH) -> str | None:
    parts: list[str] = []
    current: ElementSnapshot | None = snapshot
    depth = 0
    while current is not None and depth < max_depth:
        anchor = _anchor_selector(current)
        if anchor:
            parts.insert(0, anchor)
            break

        tag = (current.tag or "*").lower()
        selector = tag
        classes = stable_classes(current.classes)
        if classes and is_css_identifier(classes[0]):
            selector = f"{tag}.{classes[0]}"
        if current is not snapshot and current.same_tag_sibling_count > 1:
            selector += f":nth-of-type({current.nth_of_type})"

        parts.insert(0, selector)
        current = current.parent
        depth += 1

    if not parts:
        return None
    return " > ".join(parts)


def build_positional_xpath(snapshot: ElementSnapshot) -> str:
    parts: list[str] = []
    current: ElementSnapshot | None = snapshot
    topmost = snapshot
    while current is not None:
        parts.insert(0, f"{(current.tag or '*').lower()}[{current.nth_of_type}]")
        topmost = current
        current = current.parent

    if topmost.ancestry_truncated:
        return "//" + "/".join(parts)
    return "/html/body/" + "/".join(parts)


def _anchor_selector(node: ElementSnapshot) -> str | None:
    id_value = node.id
    if id_value and not is_dynamic(id_value):
        if is_css_identifier(id_value):
            return f"#{id_value}"
        return f'[id="{escape_css_string(id_value)}"]'
    testid = node.attr("data-testid")
    if testid and not is_dynamic(testid):
        return f'[data-testid="{escape_css_string(testid)}"]'
    return None
