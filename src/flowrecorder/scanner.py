from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Iterable, TYPE_CHECKING

from .list_detection import detect_collection
from .locator_generator import generate
from .models import ElementDescriptor, ElementSnapshot, LocatorCandidate, MatchOracle
from .name_suggester import suggest_var_name
from .resolver import UsedLocatorRegistry, resolve
from .selector_rules import escape_single_quoted, has_minified_class_list, normalize_space
from .storage import write_text_atomic
from .validation import PageMatchOracle

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

PRIORITY_SELECTORS: tuple[str, ...] = (
    "[data-testid]",
    "[data-test]",
    "[data-automation-id]",
    "[automation-id]",
    'input:not([type="hidden"])',
    "button",
    "textarea",
    "select",
    '[role="button"]',
    '[role="navigation"]',
    '[role="menu"]',
    '[role="menuitem"]',
    "a[href]",
    '[role="link"]',
    "nav a",
    "nav button",
    '[id]:not([id=""])',
    "form",
    "table",
    '[role="dialog"]',
    '[role="alert"]',
    "h1, h2, h3",
)

SKIPPED_TAGS = {"script", "style", "meta", "link", "noscript", "html", "body"}
ICON_TAGS = {"svg", "i"}
DISPLAY_NAME_LIMIT = 30


def is_scannable(snapshot: ElementSnapshot) -> bool:
    tag = (snapshot.tag or "").lower()
    testid = snapshot.attr("data-testid")

    if tag in SKIPPED_TAGS:
        return False
    if not snapshot.visible and tag != "input":
        return False
    if tag == "img" and not testid and not snapshot.id:
        return False
    if tag in ICON_TAGS and not snapshot.role and not testid:
        return False
    if has_minified_class_list(snapshot.class_string) and not snapshot.id and not testid:
        return False
    return True


def scan_elements(
    snapshots: Iterable[ElementSnapshot],
    oracle: MatchOracle | None = None,
    cancelled: Callable[[], bool] | None = None,
) -> list[ElementDescriptor]:
    """Describe every scannable element with one locator and a unique variable name.

    Locators are deduplicated against each other within this call only.
    ``cancelled`` is polled before each element; a truthy answer stops the scan
    and returns what was collected so far.
    """
    registry = UsedLocatorRegistry()
    used_names: set[str] = set()
    descriptors: list[ElementDescriptor] = []

    for snapshot in snapshots:
        if cancelled is not None and cancelled():
            break
        if not is_scannable(snapshot):
            continue

        candidates = generate(snapshot, oracle)
        if not candidates:
            continue
        best = candidates[0]
        # Repetition is judged on the first candidate with a countable selector.
        counted = next((candidate for candidate in candidates if candidate.css or candidate.xpath), best)

        is_list, _ = detect_collection(snapshot, counted, oracle)
        if is_list:
            chosen = counted
        else:
            chosen = resolve(snapshot, candidates, oracle, registry).candidate

        var_name = _unique_name(suggest_var_name(snapshot, len(descriptors)), used_names)
        descriptors.append(
            ElementDescriptor(
                tag=snapshot.tag,
                display_name=display_name(snapshot),
                var_name=var_name,
                locator=chosen.css or chosen.xpath or "",
                css=chosen.css,
                xpath=chosen.xpath,
                framework=_framework_expression(best, chosen),
                is_list=is_list,
            )
        )
    return descriptors


def scan_page(
    page: Page,
    root: ElementHandle | None = None,
    cancelled: Callable[[], bool] | None = None,
    oracle: MatchOracle | None = None,
) -> list[ElementDescriptor]:
    """Scan the whole page, or only the subtree under ``root``."""
    from .dom_extractor import collect_scan_targets

    snapshots = collect_scan_targets(page, root)
    return scan_elements(snapshots, oracle or PageMatchOracle(page), cancelled)


def save_scan_results(descriptors: Iterable[ElementDescriptor], path: Path) -> tuple[bool, str | None]:
    payload = json.dumps([item.to_wire() for item in descriptors], ensure_ascii=False, indent=2)
    return write_text_atomic(path, payload, "scan results")


def display_name(snapshot: ElementSnapshot) -> str:
    text = normalize_space(snapshot.text)[:DISPLAY_NAME_LIMIT]
    return text or snapshot.attr("placeholder") or snapshot.attr("value") or snapshot.tag


def _framework_expression(best: LocatorCandidate, chosen: LocatorCandidate) -> str:
    if best.framework:
        return best.framework
    if chosen.framework:
        return chosen.framework
    if chosen.css:
        return f"locator('{escape_single_quoted(chosen.css)}')"
    xpath = chosen.xpath or ""
    return f"locator('xpath={escape_single_quoted(xpath)}')"


def _unique_name(name: str, used_names: set[str]) -> str:
    candidate = name
    suffix = 2
    while candidate in used_names:
        candidate = f"{name}{suffix}"
        suffix += 1
    used_names.add(candidate)
    return candidate
