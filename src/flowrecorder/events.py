from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, ClassVar, Iterable, Iterator, Literal, Mapping, Union

from .models import LocatorRef
from .storage import write_text_atomic

AssertType = Literal["containsText", "isVisible", "hasValue", "isEnabled"]
ASSERT_TYPES: frozenset[str] = frozenset({"containsText", "isVisible", "hasValue", "isEnabled"})

DEFAULT_QUIET_PERIOD_MS = 1000


class EventDecodeError(ValueError):
    """Raised when a wire payload cannot be turned into a recorded event."""


@dataclass(frozen=True, slots=True)
class ClickEvent:
    wire_type: ClassVar[str] = "click"
    timestamp: int
    locator: LocatorRef


@dataclass(frozen=True, slots=True)
class DoubleClickEvent:
    wire_type: ClassVar[str] = "dblclick"
    timestamp: int
    locator: LocatorRef


@dataclass(frozen=True, slots=True)
class InputEvent:
    wire_type: ClassVar[str] = "input"
    timestamp: int
    locator: LocatorRef
    value: str


@dataclass(frozen=True, slots=True)
class CheckEvent:
    wire_type: ClassVar[str] = "check"
    timestamp: int
    locator: LocatorRef
    checked: bool


@dataclass(frozen=True, slots=True)
class SelectEvent:
    wire_type: ClassVar[str] = "select"
    timestamp: int
    locator: LocatorRef
    value: str


@dataclass(frozen=True, slots=True)
class PressEvent:
    wire_type: ClassVar[str] = "press"
    timestamp: int
    locator: LocatorRef
    key: str


@dataclass(frozen=True, slots=True)
class HoverEvent:
    wire_type: ClassVar[str] = "hover"
    timestamp: int
    locator: LocatorRef


@dataclass(frozen=True, slots=True)
class SubmitEvent:
    wire_type: ClassVar[str] = "submit"
    timestamp: int
    locator: LocatorRef


@dataclass(frozen=True, slots=True)
class AssertionEvent:
    wire_type: ClassVar[str] = "assertion"
    timestamp: int
    locator: LocatorRef
    assert_type: AssertType
    value: str = ""


@dataclass(frozen=True, slots=True)
class NavigationEvent:
    wire_type: ClassVar[str] = "navigation"
    timestamp: int
    url: str


RecordedEvent = Union[
    ClickEvent,
    DoubleClickEvent,
    InputEvent,
    CheckEvent,
    SelectEvent,
    PressEvent,
    HoverEvent,
    SubmitEvent,
    AssertionEvent,
    NavigationEvent,
]

EVENT_TYPES: dict[str, type] = {
    cls.wire_type: cls
    for cls in (
        ClickEvent,
        DoubleClickEvent,
        InputEvent,
        CheckEvent,
        SelectEvent,
        PressEvent,
        HoverEvent,
        SubmitEvent,
        AssertionEvent,
        NavigationEvent,
    )
}

_LOCATOR_ONLY_TYPES = (ClickEvent, DoubleClickEvent, HoverEvent, SubmitEvent)


def event_to_wire(event: RecordedEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": event.wire_type, "timestamp": event.timestamp}
    if isinstance(event, NavigationEvent):
        payload["url"] = event.url
        return payload

    locator = event.locator
    if locator.css:
        payload["css"] = locator.css
    if locator.xpath:
        payload["xpath"] = locator.xpath
    if locator.framework:
        payload["playwright"] = locator.framework

    if isinstance(event, (InputEvent, SelectEvent)):
        payload["value"] = event.value
    elif isinstance(event, CheckEvent):
        payload["checked"] = event.checked
    elif isinstance(event, PressEvent):
        payload["key"] = event.key
    elif isinstance(event, AssertionEvent):
        payload["assertType"] = event.assert_type
        payload["value"] = event.value
    return payload


def event_from_wire(payload: Mapping[str, Any]) -> RecordedEvent:
    if not isinstance(payload, Mapping):
        raise EventDecodeError(f"Event payload must be an object, got {type(payload).__name__}.")

    event_type = payload.get("type")
    cls = EVENT_TYPES.get(str(event_type))
    if cls is None:
        raise EventDecodeError(f"Unknown event type: {event_type!r}")

    timestamp = _timestamp(payload)
    if cls is NavigationEvent:
        url = _required_text(payload, "url", event_type)
        return NavigationEvent(timestamp=timestamp, url=url)

    locator = _locator(payload, event_type)
    if cls in _LOCATOR_ONLY_TYPES:
        return cls(timestamp=timestamp, locator=locator)
    if cls is InputEvent or cls is SelectEvent:
        if "value" not in payload or payload["value"] is None:
            raise EventDecodeError(f"Event {event_type!r} requires a value.")
        return cls(timestamp=timestamp, locator=locator, value=str(payload["value"]))
    if cls is CheckEvent:
        checked = payload.get("checked")
        if not isinstance(checked, bool):
            raise EventDecodeError("Event 'check' requires a boolean 'checked'.")
        return CheckEvent(timestamp=timestamp, locator=locator, checked=checked)
    if cls is PressEvent:
        return PressEvent(timestamp=timestamp, locator=locator, key=_required_text(payload, "key", event_type))

    assert_type = payload.get("assertType")
    if assert_type not in ASSERT_TYPES:
        raise EventDecodeError(f"Unknown assertion type: {assert_type!r}")
    return AssertionEvent(
        timestamp=timestamp,
        locator=locator,
        assert_type=assert_type,
        value=str(payload.get("value") or ""),
    )


def _timestamp(payload: Mapping[str, Any]) -> int:
    raw = payload.get("timestamp")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise EventDecodeError(f"Event timestamp must be a number, got {raw!r}.")
    return int(raw)


def _required_text(payload: Mapping[str, Any], key: str, event_type: object) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise EventDecodeError(f"Event {event_type!r} requires a non-empty {key!r}.")
    return value


def _locator(payload: Mapping[str, Any], event_type: object) -> LocatorRef:
    framework = payload.get("playwright") or payload.get("frameworkExpr")
    locator = LocatorRef(
        css=_optional_text(payload.get("css")),
        xpath=_optional_text(payload.get("xpath")),
        framework=_optional_text(framework),
    )
    if locator.is_empty():
        raise EventDecodeError(f"Event {event_type!r} has no locator.")
    return locator


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class EventLog:
    """Append-only, timestamp-ordered session log.

    Duplicates are kept: two clicks on the same button are two steps.
    """

    _events: list[RecordedEvent] = field(default_factory=list)
    _frozen: bool = False

    def append(self, event: RecordedEvent) -> None:
        if self._frozen:
            raise RuntimeError("Event log is frozen; the session has ended.")
        if self._events and event.timestamp < self._events[-1].timestamp:
            raise EventDecodeError(
                f"Event timestamp {event.timestamp} is earlier than {self._events[-1].timestamp}."
            )
        self._events.append(event)

    def extend(self, events: Iterable[RecordedEvent]) -> None:
        for event in events:
            self.append(event)

    def freeze(self) -> tuple[RecordedEvent, ...]:
        if self._frozen:
            raise RuntimeError("Event log was already frozen.")
        self._frozen = True
        return tuple(self._events)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[RecordedEvent]:
        return iter(tuple(self._events))


@dataclass(slots=True)
class _PendingInput:
    event: InputEvent
    deadline_ms: int


class InputDebouncer:
    """Collapses keystroke-level input into one event per quiet period.

    A value equal to the last one recorded for the same locator is dropped.
    """

    def __init__(self, quiet_period_ms: int = DEFAULT_QUIET_PERIOD_MS) -> None:
        self.quiet_period_ms = max(0, int(quiet_period_ms))
        self._pending: dict[str, _PendingInput] = {}
        self._last_values: dict[str, str] = {}

    def observe(self, locator_key: str, event: InputEvent, now_ms: int) -> None:
        self._pending[locator_key] = _PendingInput(event=event, deadline_ms=now_ms + self.quiet_period_ms)

    def has_pending(self) -> bool:
        return bool(self._pending)

    def flush_due(self, now_ms: int) -> list[InputEvent]:
        due = [key for key, pending in self._pending.items() if pending.deadline_ms <= now_ms]
        due.sort(key=lambda key: self._pending[key].deadline_ms)
        return self._release(due)

    def flush_all(self) -> list[InputEvent]:
        keys = sorted(self._pending, key=lambda key: self._pending[key].deadline_ms)
        return self._release(keys)

    def _release(self, keys: list[str]) -> list[InputEvent]:
        released: list[InputEvent] = []
        for key in keys:
            pending = self._pending.pop(key)
            if self._last_values.get(key) == pending.event.value:
                continue
            self._last_values[key] = pending.event.value
            released.append(pending.event)
        return released


def save_event_log(events: Iterable[RecordedEvent], path: Path) -> tuple[bool, str | None]:
    payload = json.dumps([event_to_wire(event) for event in events], ensure_ascii=False, indent=2)
    return write_text_atomic(path, payload, "event log")


def load_event_log(path: Path) -> list[RecordedEvent]:
    """Decode a saved log; raises ``EventDecodeError`` on malformed content."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise EventDecodeError(f"Event log is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise EventDecodeError("Event log must be a JSON array.")
    return [event_from_wire(item) for item in payload]
