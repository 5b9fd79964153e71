from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Mapping, Protocol

CandidateKind = Literal[
    "testid",
    "test",
    "role",
    "id",
    "name",
    "ariaLabel",
    "label",
    "placeholder",
    "type",
    "role-attr",
    "text",
    "filter",
    "chain",
    "cssPath",
    "xpath-basic",
    "xpath-preceding-sibling",
    "xpath-parent",
    "xpath-parent-role",
    "xpath-sibling-text",
    "xpath-ancestor",
    "xpath-multi-attr",
]
ExpressionKind = Literal["css", "xpath"]


class MatchOracle(Protocol):
    """Answers how many nodes of the current document match an expression."""

    def match_count(self, kind: ExpressionKind, expression: str) -> int: ...


@dataclass(frozen=True, slots=True)
class SiblingSnapshot:
    tag: str
    id: str | None = None
    class_string: str = ""
    text: str | None = None


@dataclass(frozen=True, slots=True)
class ElementSnapshot:
    tag: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    text: str | None = None
    label_text: str | None = None
    nth_of_type: int = 1
    same_tag_sibling_count: int = 1
    child_index: int = 1
    previous_sibling: SiblingSnapshot | None = None
    parent: ElementSnapshot | None = None
    ancestry_truncated: bool = False
    inside_nav: bool = False
    visible: bool = True

    def attr(self, key: str) -> str | None:
        raw = self.attributes.get(key)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None

    @property
    def id(self) -> str | None:
        return self.attr("id")

    @property
    def role(self) -> str | None:
        return self.attr("role")

    @property
    def class_string(self) -> str:
        return str(self.attributes.get("class") or "")

    @property
    def classes(self) -> list[str]:
        return [token for token in self.class_string.split() if token]

    @property
    def is_root_child(self) -> bool:
        return self.parent is None and not self.ancestry_truncated

    def ancestors(self) -> Iterator[ElementSnapshot]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    @property
    def depth(self) -> int:
        return sum(1 for _ in self.ancestors())


@dataclass(frozen=True, slots=True)
class LocatorRef:
    css: str | None = None
    xpath: str | None = None
    framework: str | None = None

    def is_empty(self) -> bool:
        return not (self.css or self.xpath or self.framework)

    def key(self) -> str:
        return self.css or self.xpath or self.framework or ""


@dataclass(frozen=True, slots=True)
class LocatorCandidate:
    kind: CandidateKind
    score: int
    css: str | None = None
    xpath: str | None = None
    framework: str | None = None
    match_count: int | None = None
    dynamic_warning: bool = False

    def __post_init__(self) -> None:
        if not (self.css or self.xpath or self.framework):
            raise ValueError(f"Locator candidate {self.kind!r} has no expression.")

    @property
    def is_unique(self) -> bool:
        return self.match_count == 1

    def to_locator(self) -> LocatorRef:
        return LocatorRef(css=self.css, xpath=self.xpath, framework=self.framework)


@dataclass(frozen=True, slots=True)
class ElementDescriptor:
    tag: str
    display_name: str
    var_name: str
    locator: str
    css: str | None
    xpath: str | None
    framework: str | None
    is_list: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": f"List<{self.tag}>" if self.is_list else self.tag,
            "name": self.display_name,
            "varName": self.var_name,
            "locator": self.locator,
            "css": self.css,
            "xpath": self.xpath,
            "playwright": self.framework,
            "isList": self.is_list,
        }
