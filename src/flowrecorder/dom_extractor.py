from __future__ import annotations

from typing import Any, Mapping, Sequence, TYPE_CHECKING

from .models import ElementSnapshot, SiblingSnapshot
from .selector_rules import normalize_space

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

MAX_ANCESTRY_DEPTH = 14

# Shared with the capture script injected by the recorder, which calls it on
# event targets before posting them back to Python.
SNAPSHOT_FUNCTION = """
(el) => {
  const MAX_DEPTH = %(max_depth)d;
  const clean = (value, limit) => String(value || '').trim().replace(/\\s+/g, ' ').slice(0, limit);

  const describe = (node, detailed) => {
    const attributes = {};
    for (const attr of Array.from(node.attributes || [])) {
      attributes[attr.name] = attr.value;
    }

    let nth = 1;
    let childIndex = 1;
    let sibling = node;
    while ((sibling = sibling.previousElementSibling)) {
      childIndex += 1;
      if (sibling.tagName === node.tagName) nth += 1;
    }
    let sameTag = 0;
    const parent = node.parentElement;
    for (const child of Array.from(parent ? parent.children : [node])) {
      if (child.tagName === node.tagName) sameTag += 1;
    }

    const entry = {
      tag: (node.tagName || '').toLowerCase(),
      attributes,
      nth_of_type: nth,
      same_tag_sibling_count: Math.max(sameTag, 1),
      child_index: childIndex,
    };
    if (!detailed) {
      return entry;
    }

    const labels = node.labels ? Array.from(node.labels) : [];
    const previous = node.previousElementSibling;
    const style = window.getComputedStyle(node);
    const rect = node.getBoundingClientRect();
    entry.text = clean(node.innerText || node.textContent, 200) || null;
    entry.label_text = labels.length ? clean(labels[0].innerText || labels[0].textContent, 200) || null : null;
    entry.previous_sibling = previous
      ? {
          tag: (previous.tagName || '').toLowerCase(),
          id: previous.id || null,
          class: typeof previous.className === 'string' ? previous.className : '',
          text: clean(previous.innerText || previous.textContent, 200) || null,
        }
      : null;
    entry.inside_nav = Boolean(node.parentElement && node.parentElement.closest('nav, [role="navigation"]'));
    entry.visible = rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
    return entry;
  };

  const nodes = [describe(el, true)];
  let truncated = false;
  let current = el.parentElement;
  while (current && current !== document.body && current !== document.documentElement) {
    if (nodes.length >= MAX_DEPTH) {
      truncated = true;
      break;
    }
    nodes.push(describe(current, false));
    current = current.parentElement;
  }
  return { nodes, truncated };
}
""" % {"max_depth": MAX_ANCESTRY_DEPTH}

_COLLECT_SCRIPT = """
({ root, selectors }) => {
  const snapshot = %(snapshot)s;
  const scope = root || document;
  const seen = new Set();
  const payloads = [];
  for (const selector of selectors) {
    let matches = [];
    try {
      matches = Array.from(scope.querySelectorAll(selector));
    } catch (err) {
      continue;
    }
    for (const node of matches) {
      if (seen.has(node)) continue;
      seen.add(node);
      payloads.push(snapshot(node));
    }
  }
  return payloads;
}
""" % {"snapshot": SNAPSHOT_FUNCTION.strip()}


def extract_element_snapshot(element: ElementHandle) -> ElementSnapshot:
    payload = element.evaluate(SNAPSHOT_FUNCTION)
    return snapshot_from_payload(payload)


def collect_scan_targets(
    page: Page,
    root: ElementHandle | None = None,
    selectors: Sequence[str] | None = None,
) -> list[ElementSnapshot]:
    """Snapshots of every element matched by the scan selectors, in document order per selector."""
    if selectors is None:
        from .scanner import PRIORITY_SELECTORS

        selectors = PRIORITY_SELECTORS
    payloads = page.evaluate(_COLLECT_SCRIPT, {"root": root, "selectors": list(selectors)})
    return [snapshot_from_payload(payload) for payload in payloads or [] if isinstance(payload, dict)]


def snapshot_from_payload(payload: Mapping[str, Any]) -> ElementSnapshot:
    """Build the snapshot chain from the element-first ``nodes`` list."""
    nodes = [node for node in payload.get("nodes", []) if isinstance(node, Mapping)]
    if not nodes:
        raise ValueError("Snapshot payload has no nodes.")
    truncated = bool(payload.get("truncated", False))

    parent: ElementSnapshot | None = None
    last_index = len(nodes) - 1
    for index in range(last_index, -1, -1):
        node = nodes[index]
        is_target = index == 0
        parent = ElementSnapshot(
            tag=str(node.get("tag") or "").lower() or "*",
            attributes={str(key): str(value) for key, value in dict(node.get("attributes") or {}).items()},
            text=normalize_space(node.get("text")) or None if is_target else None,
            label_text=normalize_space(node.get("label_text")) or None if is_target else None,
            nth_of_type=_positive_int(node.get("nth_of_type")),
            same_tag_sibling_count=_positive_int(node.get("same_tag_sibling_count")),
            child_index=_positive_int(node.get("child_index")),
            previous_sibling=_sibling(node.get("previous_sibling")) if is_target else None,
            parent=parent,
            ancestry_truncated=truncated and index == last_index,
            inside_nav=bool(node.get("inside_nav", False)),
            visible=bool(node.get("visible", True)),
        )
    assert parent is not None
    return parent


def _sibling(raw: object) -> SiblingSnapshot | None:
    if not isinstance(raw, Mapping):
        return None
    return SiblingSnapshot(
        tag=str(raw.get("tag") or "").lower(),
        id=str(raw["id"]) if raw.get("id") else None,
        class_string=str(raw.get("class") or ""),
        text=normalize_space(raw.get("text")) or None,
    )


def _positive_int(raw: object) -> int:
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1
    return max(1, value)
