import pytest

from flowrecorder.dom_extractor import (
    SNAPSHOT_FUNCTION,
    collect_scan_targets,
    extract_element_snapshot,
    snapshot_from_payload,
)
from flowrecorder.scanner import PRIORITY_SELECTORS


def _payload(truncated: bool = False) -> dict:
    return {
        "nodes": [
            {
                "tag": "INPUT",
                "attributes": {"name": "email", "type": "email"},
                "nth_of_type": 2,
                "same_tag_sibling_count": 3,
                "child_index": 4,
                "text": "  ",
                "label_text": " Email ",
                "previous_sibling": {"tag": "LABEL", "id": "", "class": "hint", "text": "Email"},
                "inside_nav": False,
                "visible": True,
            },
            {"tag": "div", "attributes": {"class": "row"}, "nth_of_type": 1, "same_tag_sibling_count": 1, "child_index": 1},
            {"tag": "form", "attributes": {"id": "login"}, "nth_of_type": "x", "same_tag_sibling_count": 1, "child_index": 2},
        ],
        "truncated": truncated,
    }


class _FakeElement:
    def __init__(self, payload: dict) -> None:
        self.payload = payload
        self.scripts: list[str] = []

    def evaluate(self, script: str):
        self.scripts.append(script)
        return self.payload


class _FakePage:
    def __init__(self, payloads: list) -> None:
        self.payloads = payloads
        self.calls: list[tuple[str, dict]] = []

    def evaluate(self, script: str, arg: dict):
        self.calls.append((script, arg))
        return self.payloads


def test_payload_becomes_snapshot_chain() -> None:
    snapshot = snapshot_from_payload(_payload())

    assert snapshot.tag == "input"
    assert snapshot.attr("name") == "email"
    assert snapshot.text is None
    assert snapshot.label_text == "Email"
    assert snapshot.nth_of_type == 2
    assert snapshot.same_tag_sibling_count == 3
    assert snapshot.child_index == 4
    assert snapshot.previous_sibling is not None
    assert snapshot.previous_sibling.tag == "label"
    assert snapshot.previous_sibling.id is None
    assert [node.tag for node in snapshot.ancestors()] == ["div", "form"]
    assert snapshot.parent.text is None
    assert snapshot.parent.parent.nth_of_type == 1
    assert snapshot.parent.parent.ancestry_truncated is False


def test_truncation_flag_lands_on_topmost_node() -> None:
    snapshot = snapshot_from_payload(_payload(truncated=True))

    assert snapshot.ancestry_truncated is False
    assert snapshot.parent.parent.ancestry_truncated is True


def test_empty_payload_is_rejected() -> None:
    with pytest.raises(ValueError):
        snapshot_from_payload({"nodes": []})


def test_extract_uses_shared_snapshot_function() -> None:
    element = _FakeElement(_payload())

    snapshot = extract_element_snapshot(element)

    assert element.scripts == [SNAPSHOT_FUNCTION]
    assert snapshot.tag == "input"


def test_collect_scan_targets_passes_priority_selectors() -> None:
    page = _FakePage([_payload(), "garbage"])

    snapshots = collect_scan_targets(page)

    assert len(snapshots) == 1
    _, arg = page.calls[0]
    assert arg["root"] is None
    assert arg["selectors"] == list(PRIORITY_SELECTORS)
