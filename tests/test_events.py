import json

import pytest

from flowrecorder.events import (
    AssertionEvent,
    ClickEvent,
    EventDecodeError,
    EventLog,
    InputDebouncer,
    InputEvent,
    NavigationEvent,
    event_from_wire,
    event_to_wire,
    load_event_log,
    save_event_log,
)
from flowrecorder.models import LocatorRef

EMAIL = LocatorRef(css='[name="email"]', xpath='//*[@name="email"]')


def _input(value: str, timestamp: int = 0) -> InputEvent:
    return InputEvent(timestamp=timestamp, locator=EMAIL, value=value)


def test_decode_accepts_framework_alias() -> None:
    event = event_from_wire({"type": "click", "timestamp": 5, "frameworkExpr": "getByTestId('login')"})

    assert event == ClickEvent(timestamp=5, locator=LocatorRef(framework="getByTestId('login')"))


def test_decode_assertion_and_navigation() -> None:
    assertion = event_from_wire({"type": "assertion", "timestamp": 1, "css": "h1", "assertType": "containsText", "value": "Hi"})
    navigation = event_from_wire({"type": "navigation", "timestamp": 2, "url": "https://example.com/"})

    assert assertion == AssertionEvent(timestamp=1, locator=LocatorRef(css="h1"), assert_type="containsText", value="Hi")
    assert navigation == NavigationEvent(timestamp=2, url="https://example.com/")


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "scroll", "timestamp": 1, "css": "body"},
        {"type": "assertion", "timestamp": 1, "css": "h1", "assertType": "isHidden"},
        {"type": "click", "timestamp": 1},
        {"type": "check", "timestamp": 1, "css": "#tos", "checked": "yes"},
        {"type": "input", "timestamp": 1, "css": "#q"},
        {"type": "press", "timestamp": 1, "css": "#q", "key": ""},
        {"type": "navigation", "timestamp": 1},
        {"type": "click", "timestamp": "soon", "css": "#q"},
        ["click"],
    ],
)
def test_malformed_payloads_are_rejected(payload) -> None:
    with pytest.raises(EventDecodeError):
        event_from_wire(payload)


def test_decode_error_is_a_value_error() -> None:
    assert issubclass(EventDecodeError, ValueError)


def test_encode_omits_absent_fields() -> None:
    wire = event_to_wire(ClickEvent(timestamp=3, locator=LocatorRef(css="#save")))

    assert wire == {"type": "click", "timestamp": 3, "css": "#save"}


def test_encode_input_keeps_value_and_both_expressions() -> None:
    wire = event_to_wire(_input("alice@example.com", 9))

    assert wire == {
        "type": "input",
        "timestamp": 9,
        "css": '[name="email"]',
        "xpath": '//*[@name="email"]',
        "value": "alice@example.com",
    }


def test_log_keeps_duplicates_and_rejects_time_travel() -> None:
    log = EventLog()
    click = ClickEvent(timestamp=10, locator=LocatorRef(css="#save"))
    log.append(click)
    log.append(click)

    with pytest.raises(EventDecodeError):
        log.append(ClickEvent(timestamp=9, locator=LocatorRef(css="#save")))

    assert len(log) == 2


def test_log_freezes_exactly_once() -> None:
    log = EventLog()
    log.append(ClickEvent(timestamp=1, locator=LocatorRef(css="#a")))

    frozen = log.freeze()

    assert frozen == (ClickEvent(timestamp=1, locator=LocatorRef(css="#a")),)
    with pytest.raises(RuntimeError):
        log.freeze()
    with pytest.raises(RuntimeError):
        log.append(ClickEvent(timestamp=2, locator=LocatorRef(css="#a")))


def test_debouncer_waits_for_quiet_period() -> None:
    debouncer = InputDebouncer(quiet_period_ms=1000)
    debouncer.observe("email", _input("al", 0), now_ms=0)
    debouncer.observe("email", _input("alice", 500), now_ms=500)

    assert debouncer.flush_due(1000) == []
    assert debouncer.flush_due(1500) == [_input("alice", 500)]
    assert debouncer.has_pending() is False


def test_debouncer_drops_repeated_value() -> None:
    debouncer = InputDebouncer(quiet_period_ms=1000)
    debouncer.observe("email", _input("alice", 0), now_ms=0)
    first = debouncer.flush_due(1000)
    debouncer.observe("email", _input("alice", 2000), now_ms=2000)
    second = debouncer.flush_due(3000)

    assert first == [_input("alice", 0)]
    assert second == []


def test_debouncer_flush_all_drains_in_deadline_order() -> None:
    debouncer = InputDebouncer(quiet_period_ms=1000)
    debouncer.observe("b", _input("second", 200), now_ms=200)
    debouncer.observe("a", _input("first", 100), now_ms=100)

    assert [event.value for event in debouncer.flush_all()] == ["first", "second"]
    assert debouncer.flush_all() == []


def test_saved_log_loads_back(tmp_path) -> None:
    events = [
        NavigationEvent(timestamp=1, url="https://example.com/login"),
        _input("alice@example.com", 2),
    ]
    path = tmp_path / "out" / "recordedSteps.json"

    ok, error = save_event_log(events, path)

    assert ok is True
    assert error is None
    assert json.loads(path.read_text(encoding="utf-8"))[0] == {
        "type": "navigation",
        "timestamp": 1,
        "url": "https://example.com/login",
    }
    assert load_event_log(path) == events
    assert not list(path.parent.glob("*.tmp"))


def test_load_rejects_non_array(tmp_path) -> None:
    path = tmp_path / "log.json"
    path.write_text('{"type": "click"}', encoding="utf-8")

    with pytest.raises(EventDecodeError):
        load_event_log(path)
