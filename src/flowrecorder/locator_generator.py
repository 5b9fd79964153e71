from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import CandidateKind, ElementSnapshot, LocatorCandidate, MatchOracle
from .scoring import score, sort_candidates
from .selector_rules import (
    escape_css_identifier,
    escape_css_string,
    escape_single_quoted,
    first_non_dynamic_class,
    has_minified_class_list,
    is_css_identifier,
    is_dynamic,
    stable_classes,
    xpath_literal,
)
from .validation import PageMatchOracle, safe_match_count

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

TEXT_TAGS = {"a", "button", "span", "div"}
TEXT_LIMIT = 30
SIBLING_TEXT_LIMIT = 20
STRUCTURAL_XPATH_DEPTH = 3
ANCESTOR_SEARCH_DEPTH = 3
MINIFIED_CSS_PATH_PENALTY = 30

ROLE_NAME_SCORE = 95
LABEL_SCORE = 88
CHAIN_SCORE = 78
FILTER_SCORE = 72

PRECEDING_SIBLING_ID_SCORE = 70
PRECEDING_SIBLING_CLASS_SCORE = 65
PARENT_ID_SCORE = 68
PARENT_ROLE_SCORE = 66
ANCESTOR_SCORE = 64
SIBLING_TEXT_SCORE = 62
MULTI_ATTR_SCORE = 60

IMPLICIT_ROLES = {"button": "button", "a": "link"}


@dataclass(slots=True)
class DomAnalyzer:
    snapshot: ElementSnapshot

    @property
    def tag(self) -> str:
        raw = (self.snapshot.tag or "").strip().lower()
        return raw or "*"

    def attr(self, key: str) -> str | None:
        return self.snapshot.attr(key)

    @property
    def text(self) -> str:
        return (self.snapshot.text or "").strip()

    def short_text(self, limit: int = TEXT_LIMIT) -> str:
        return self.text[:limit]

    def implicit_role(self) -> str | None:
        return self.attr("role") or IMPLICIT_ROLES.get(self.tag)


class CandidateFactory:
    def __init__(self, analyzer: DomAnalyzer, oracle: MatchOracle | None = None) -> None:
        self.analyzer = analyzer
        self.oracle = oracle
        self._candidates: list[LocatorCandidate] = []
        self._seen: set[tuple[str, str | None, str | None, str | None]] = set()

    def generate(self) -> list[LocatorCandidate]:
        self._add_role_name_strategy()
        self._add_test_attr_strategies()
        self._add_id_strategy()
        self._add_name_strategy()
        self._add_aria_label_strategy()
        self._add_label_strategy()
        self._add_placeholder_strategy()
        self._add_type_strategy()
        self._add_role_attr_strategy()
        self._add_text_strategy()
        self._add_class_filter_strategy()
        self._add_parent_chain_strategy()
        self._add_structural_strategies()

        if not any(candidate.is_unique for candidate in self._candidates):
            self._add_advanced_xpath_fallbacks()

        return sort_candidates(self._candidates)

    def _add_role_name_strategy(self) -> None:
        role = self.analyzer.implicit_role()
        aria_label = self.analyzer.attr("aria-label")
        text = self.analyzer.text
        if not role or not (aria_label or text):
            return
        name = aria_label or text[:TEXT_LIMIT]
        css: str | None = None
        xpath: str | None = None
        # An implicit role has no attribute to select on; only getByRole can address it.
        if self.analyzer.attr("role"):
            css = f'[role="{escape_css_string(role)}"]'
            xpath = f"//*[@role={xpath_literal(role)}]"
        self._add(
            LocatorCandidate(
                kind="role",
                framework=(
                    f"getByRole('{escape_single_quoted(role)}', "
                    f"{{ name: '{escape_single_quoted(name)}' }})"
                ),
                css=css,
                xpath=xpath,
                score=ROLE_NAME_SCORE,
            )
        )

    def _add_test_attr_strategies(self) -> None:
        testid = self.analyzer.attr("data-testid")
        if testid and not is_dynamic(testid):
            self._add_counted(
                "testid",
                score("data-testid", testid),
                css=f'[data-testid="{escape_css_string(testid)}"]',
                xpath=f"//*[@data-testid={xpath_literal(testid)}]",
                framework=f"getByTestId('{escape_single_quoted(testid)}')",
            )

        test = self.analyzer.attr("data-test")
        if test and not is_dynamic(test):
            self._add_counted(
                "test",
                score("data-test", test),
                css=f'[data-test="{escape_css_string(test)}"]',
                xpath=f"//*[@data-test={xpath_literal(test)}]",
            )

    def _add_id_strategy(self) -> None:
        id_value = self.analyzer.attr("id")
        if not id_value or is_dynamic(id_value):
            return
        self._add_counted(
            "id",
            score("id", id_value),
            css=_id_css(id_value),
            xpath=f"//*[@id={xpath_literal(id_value)}]",
        )

    def _add_name_strategy(self) -> None:
        name = self.analyzer.attr("name")
        if not name or is_dynamic(name):
            return
        self._add_counted(
            "name",
            score("name", name),
            css=f'[name="{escape_css_string(name)}"]',
            xpath=f"//*[@name={xpath_literal(name)}]",
        )

    def _add_aria_label_strategy(self) -> None:
        label = self.analyzer.attr("aria-label")
        if not label:
            return
        self._add_counted(
            "ariaLabel",
            score("aria-label", label),
            css=f'[aria-label="{escape_css_string(label)}"]',
            xpath=f"//*[@aria-label={xpath_literal(label)}]",
            framework=f"getByLabel('{escape_single_quoted(label)}')",
        )

    def _add_label_strategy(self) -> None:
        label_text = (self.analyzer.snapshot.label_text or "").strip()
        if not label_text:
            return
        framework = f"getByLabel('{escape_single_quoted(label_text)}')"
        id_value = self.analyzer.attr("id")
        if id_value:
            self._add(
                LocatorCandidate(
                    kind="label",
                    framework=framework,
                    css=f'[id="{escape_css_string(id_value)}"]',
                    xpath=f"//*[@id={xpath_literal(id_value)}]",
                    score=LABEL_SCORE,
                    match_count=1,
                )
            )
            return
        # Wrapping <label> without a for/id pair: only the framework can address it.
        self._add(LocatorCandidate(kind="label", framework=framework, score=LABEL_SCORE))

    def _add_placeholder_strategy(self) -> None:
        placeholder = self.analyzer.attr("placeholder")
        if not placeholder:
            return
        self._add_counted(
            "placeholder",
            score("placeholder", placeholder),
            css=f'[placeholder="{escape_css_string(placeholder)}"]',
            xpath=f"//*[@placeholder={xpath_literal(placeholder)}]",
            framework=f"getByPlaceholder('{escape_single_quoted(placeholder)}')",
        )

    def _add_type_strategy(self) -> None:
        input_type = self.analyzer.attr("type")
        if not input_type or self.analyzer.tag != "input":
            return
        self._add_counted(
            "type",
            score("type", input_type),
            css=f'input[type="{escape_css_string(input_type)}"]',
            xpath=f"//input[@type={xpath_literal(input_type)}]",
        )

    def _add_role_attr_strategy(self) -> None:
        role = self.analyzer.attr("role")
        if not role:
            return
        self._add_counted(
            "role-attr",
            score("role", role),
            css=f'[role="{escape_css_string(role)}"]',
            xpath=f"//*[@role={xpath_literal(role)}]",
        )

    def _add_text_strategy(self) -> None:
        tag = self.analyzer.tag
        text = self.analyzer.short_text()
        if tag not in TEXT_TAGS or not text:
            return
        if tag == "button":
            framework = f"getByRole('button', {{ name: '{escape_single_quoted(text)}' }})"
        elif tag == "a":
            framework = f"getByRole('link', {{ name: '{escape_single_quoted(text)}' }})"
        else:
            framework = f"getByText('{escape_single_quoted(text)}')"
        self._add(
            LocatorCandidate(
                kind="text",
                framework=framework,
                css=f'{tag}:has-text("{escape_css_string(text)}")',
                xpath=f"//{tag}[contains(text(), {xpath_literal(text)})]",
                score=score("text", text),
            )
        )

    def _add_class_filter_strategy(self) -> None:
        snapshot = self.analyzer.snapshot
        text = self.analyzer.text
        if not snapshot.classes or has_minified_class_list(snapshot.class_string):
            return
        if not text or len(text) >= TEXT_LIMIT:
            return
        stable_class = first_non_dynamic_class(snapshot.classes)
        if not stable_class:
            return
        self._add(
            LocatorCandidate(
                kind="filter",
                framework=(
                    f"locator('.{escape_single_quoted(stable_class)}')"
                    f".filter({{ hasText: '{escape_single_quoted(text)}' }})"
                ),
                css=f".{escape_css_identifier(stable_class)}",
                xpath=f"//*[contains(@class, {xpath_literal(stable_class)})]",
                score=FILTER_SCORE,
            )
        )

    def _add_parent_chain_strategy(self) -> None:
        parent = self.analyzer.snapshot.parent
        if parent is None:
            return
        parent_testid = parent.attr("data-testid")
        if not parent_testid or is_dynamic(parent_testid):
            return
        tag = self.analyzer.tag
        self._add(
            LocatorCandidate(
                kind="chain",
                framework=f"getByTestId('{escape_single_quoted(parent_testid)}').locator('{tag}')",
                css=f'[data-testid="{escape_css_string(parent_testid)}"] {tag}',
                xpath=f"//*[@data-testid={xpath_literal(parent_testid)}]//{tag}",
                score=CHAIN_SCORE,
            )
        )

    def _add_structural_strategies(self) -> None:
        snapshot = self.analyzer.snapshot
        css_path = build_css_path(snapshot)
        xpath = build_structural_xpath(snapshot)

        minified = has_minified_class_list(snapshot.class_string)
        css_path_score = score("css-path", css_path)
        if minified:
            css_path_score -= MINIFIED_CSS_PATH_PENALTY

        self._add(
            LocatorCandidate(
                kind="cssPath",
                css=css_path,
                xpath=xpath,
                score=css_path_score,
                match_count=safe_match_count(self.oracle, "css", css_path),
                dynamic_warning=minified,
            )
        )
        self._add_counted("xpath-basic", score("xpath", xpath), xpath=xpath)

    def _add_advanced_xpath_fallbacks(self) -> None:
        snapshot = self.analyzer.snapshot
        tag = self.analyzer.tag

        sibling = snapshot.previous_sibling
        if sibling is not None:
            if sibling.id and not is_dynamic(sibling.id):
                self._add_fallback(
                    "xpath-preceding-sibling",
                    f"//*[@id={xpath_literal(sibling.id)}]/following-sibling::{tag}[1]",
                    PRECEDING_SIBLING_ID_SCORE,
                )
            elif sibling.class_string and not has_minified_class_list(sibling.class_string):
                sibling_class = first_non_dynamic_class(sibling.class_string.split())
                if sibling_class:
                    self._add_fallback(
                        "xpath-preceding-sibling",
                        f"//*[contains(@class,{xpath_literal(sibling_class)})]/following-sibling::{tag}[1]",
                        PRECEDING_SIBLING_CLASS_SCORE,
                    )

        parent = snapshot.parent
        if parent is not None:
            parent_id = parent.id
            parent_role = parent.role
            if parent_id and not is_dynamic(parent_id):
                self._add_fallback(
                    "xpath-parent",
                    f"//*[@id={xpath_literal(parent_id)}]/*[{snapshot.child_index}]",
                    PARENT_ID_SCORE,
                )
            elif parent_role:
                self._add_fallback(
                    "xpath-parent-role",
                    f"//*[@role={xpath_literal(parent_role)}]/*[{snapshot.child_index}]",
                    PARENT_ROLE_SCORE,
                )

        sibling_text = (sibling.text or "").strip()[:SIBLING_TEXT_LIMIT] if sibling is not None else ""
        if sibling_text:
            self._add_fallback(
                "xpath-sibling-text",
                f"//*[contains(text(),{xpath_literal(sibling_text)})]/following-sibling::{tag}[1]",
                SIBLING_TEXT_SCORE,
            )

        for level, ancestor in enumerate(snapshot.ancestors()):
            if level >= ANCESTOR_SEARCH_DEPTH:
                break
            ancestor_id = ancestor.id
            if ancestor_id and not is_dynamic(ancestor_id):
                self._add_fallback(
                    "xpath-ancestor",
                    f"//*[@id={xpath_literal(ancestor_id)}]//{tag}[{snapshot.nth_of_type}]",
                    ANCESTOR_SCORE,
                )
                break

        predicates: list[str] = []
        if snapshot.classes and not has_minified_class_list(snapshot.class_string):
            own_class = first_non_dynamic_class(snapshot.classes)
            if own_class:
                predicates.append(f"contains(@class,{xpath_literal(own_class)})")
        input_type = self.analyzer.attr("type")
        if input_type:
            predicates.append(f"@type={xpath_literal(input_type)}")
        if len(predicates) >= 2:
            self._add_fallback(
                "xpath-multi-attr",
                f"//{tag}[{' and '.join(predicates)}]",
                MULTI_ATTR_SCORE,
            )

    def _add_fallback(self, kind: CandidateKind, xpath: str, fixed_score: int) -> None:
        self._add(LocatorCandidate(kind=kind, xpath=xpath, score=fixed_score))

    def _add_counted(
        self,
        kind: CandidateKind,
        candidate_score: int,
        *,
        css: str | None = None,
        xpath: str | None = None,
        framework: str | None = None,
    ) -> None:
        if css:
            match_count = safe_match_count(self.oracle, "css", css)
        else:
            match_count = safe_match_count(self.oracle, "xpath", xpath)
        self._add(
            LocatorCandidate(
                kind=kind,
                css=css,
                xpath=xpath,
                framework=framework,
                score=candidate_score,
                match_count=match_count,
            )
        )

    def _add(self, candidate: LocatorCandidate) -> None:
        key = (candidate.kind, candidate.css, candidate.xpath, candidate.framework)
        if key in self._seen:
            return
        self._seen.add(key)
        self._candidates.append(candidate)


def build_css_path(snapshot: ElementSnapshot) -> str:
    tag = (snapshot.tag or "*").lower()
    classes = stable_classes(snapshot.classes)[:2]
    class_part = ".".join(escape_css_identifier(token) for token in classes)

    css_path = f"{tag}.{class_part}" if class_part else tag
    if snapshot.nth_of_type > 1 or not class_part:
        css_path += f":nth-of-type({snapshot.nth_of_type})"

    parent = snapshot.parent
    if parent is not None:
        parent_tag = (parent.tag or "*").lower()
        parent_classes = stable_classes(parent.classes)[:1]
        parent_selector = (
            f"{parent_tag}.{escape_css_identifier(parent_classes[0])}" if parent_classes else parent_tag
        )
        css_path = f"{parent_selector} > {css_path}"
    return css_path


def build_structural_xpath(snapshot: ElementSnapshot, max_depth: int = STRUCTURAL_XPATH_DEPTH) -> str:
    parts: list[str] = []
    current: ElementSnapshot | None = snapshot
    while current is not None and len(parts) < max_depth:
        parts.insert(0, f"{(current.tag or '*').lower()}[{current.nth_of_type}]")
        current = current.parent
    return "//" + "/".join(parts)


def _id_css(id_value: str) -> str:
    if is_css_identifier(id_value):
        return f"#{id_value}"
    return f'[id="{escape_css_string(id_value)}"]'


def generate(snapshot: ElementSnapshot, oracle: MatchOracle | None = None) -> list[LocatorCandidate]:
    """Ranked locator candidates for ``snapshot``, best first."""
    factory = CandidateFactory(DomAnalyzer(snapshot=snapshot), oracle=oracle)
    return factory.generate()


def generate_locator_candidates(page: Page, element: ElementHandle) -> list[LocatorCandidate]:
    from .dom_extractor import extract_element_snapshot

    snapshot = extract_element_snapshot(element)
    return generate(snapshot, PageMatchOracle(page))
