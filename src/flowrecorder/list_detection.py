from __future__ import annotations

from .models import ElementSnapshot, LocatorCandidate, MatchOracle
from .validation import candidate_match_count

REPEATING_ITEM_TAGS = {"a", "button", "li"}
TABLE_ITEM_TAGS = {"tr", "td"}
MENU_ITEM_ROLES = {"menuitem"}


def is_collection_member(snapshot: ElementSnapshot, match_count: int | None) -> bool:
    """True when the locator intentionally addresses a repeating item."""
    if match_count is None or match_count <= 1:
        return False

    tag = (snapshot.tag or "").strip().lower()
    role = (snapshot.role or "").strip().lower()
    if tag in REPEATING_ITEM_TAGS:
        return True
    if snapshot.inside_nav or role in MENU_ITEM_ROLES:
        return True
    return tag in TABLE_ITEM_TAGS


def detect_collection(
    snapshot: ElementSnapshot,
    candidate: LocatorCandidate,
    oracle: MatchOracle | None,
) -> tuple[bool, int | None]:
    # A live count wins over any count fixed at generation time.
    match_count = candidate_match_count(oracle, candidate)
    if match_count is None:
        match_count = candidate.match_count
    return is_collection_member(snapshot, match_count), match_count
