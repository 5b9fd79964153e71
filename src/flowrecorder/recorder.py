from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from pathlib import Path
import queue
import sys
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Sequence

from .code_emitters import OUTPUT_FILENAMES, build_test_file, emit_all
from .dom_extractor import SNAPSHOT_FUNCTION, snapshot_from_payload
from .events import (
    CheckEvent,
    ClickEvent,
    EventDecodeError,
    EventLog,
    InputDebouncer,
    InputEvent,
    NavigationEvent,
    PressEvent,
    RecordedEvent,
    SelectEvent,
    event_from_wire,
    save_event_log,
)
from .locator_generator import generate
from .models import ElementDescriptor, LocatorRef, MatchOracle
from .resolver import resolve
from .runtime_checks import (
    _is_missing_browser_error,
    is_closed_target_error,
    missing_browser_message,
    normalize_url,
)
from .scanner import save_scan_results, scan_page
from .settings import CONFIG_DIR, RecorderSettings
from .validation import PageMatchOracle

if TYPE_CHECKING:
    from playwright.sync_api import Browser, Frame, Page, Playwright

LOG_PATH = CONFIG_DIR / "recorder.log"
EVENT_LOG_FILENAME = "recordedSteps.json"
BINDING_NAME = "__flowrecorderEmit"
SCAN_RESULTS_FILENAME = "scannedElements.json"

CAPTURE_SCRIPT = """
(() => {
  if (window.top !== window || window.__flowrecorderInstalled) return;
  window.__flowrecorderInstalled = true;
  window.__flowrecorderStop = false;

  const snapshot = %(snapshot)s;
  let hovered = null;
  let scanMode = false;

  const leaveScanMode = () => {
    scanMode = false;
    document.documentElement.style.cursor = '';
  };

  const send = (type, el, extra) => {
    if (!el || el.nodeType !== Node.ELEMENT_NODE) return;
    const payload = Object.assign({ type, snapshot: snapshot(el), timestamp: Date.now() }, extra || {});
    Promise.resolve(window.%(binding)s(payload)).catch(() => {});
  };

  const shortcuts = {
    KeyH: (el) => send('hover', el),
    KeyV: (el) => send('assertion', el, { assertType: 'isVisible', value: '' }),
    KeyT: (el) => send('assertion', el, {
      assertType: 'containsText',
      value: String(el.innerText || el.textContent || '').trim().slice(0, 200),
    }),
    KeyE: (el) => send('assertion', el, { assertType: 'hasValue', value: String(el.value ?? '') }),
    KeyN: (el) => send('assertion', el, { assertType: 'isEnabled', value: '' }),
  };

  document.addEventListener('mouseover', (e) => { hovered = e.target; }, true);
  document.addEventListener('click', (e) => {
    if (scanMode) {
      e.preventDefault();
      e.stopPropagation();
      leaveScanMode();
      window.__flowrecorderScanTarget = e.target;
      window.__flowrecorderScanCancelled = false;
      window.__flowrecorderScanPending = true;
      return;
    }
    send('click', e.target);
  }, true);
  document.addEventListener('dblclick', (e) => send('dblclick', e.target), true);
  document.addEventListener('input', (e) => {
    const el = e.target;
    if (!el || el.type === 'checkbox' || el.type === 'radio' || el.tagName === 'SELECT') return;
    send('input', el, { value: String(el.value ?? '') });
  }, true);
  document.addEventListener('change', (e) => {
    const el = e.target;
    if (!el) return;
    if (el.type === 'checkbox' || el.type === 'radio') {
      send('check', el, { checked: Boolean(el.checked) });
    } else if (el.tagName === 'SELECT') {
      send('select', el, { value: String(el.value) });
    }
  }, true);
  document.addEventListener('keydown', (e) => {
    if (e.key === 'Escape') {
      if (scanMode) leaveScanMode();
      window.__flowrecorderScanCancelled = true;
      return;
    }
    if (e.altKey && e.shiftKey) {
      if (e.code === 'KeyS') {
        window.__flowrecorderStop = true;
        e.preventDefault();
        return;
      }
      if (e.code === 'KeyR') {
        scanMode = true;
        document.documentElement.style.cursor = 'crosshair';
        e.preventDefault();
        return;
      }
      const action = shortcuts[e.code];
      if (action && hovered) {
        action(hovered);
        e.preventDefault();
      }
      return;
    }
    const tag = e.target && e.target.tagName;
    if (e.key === 'Enter' && (tag === 'INPUT' || tag === 'TEXTAREA')) {
      send('press', e.target, { key: 'Enter' });
    }
  }, true);
  document.addEventListener('submit', (e) => send('submit', e.target), true);
})();
""" % {"snapshot": SNAPSHOT_FUNCTION.strip(), "binding": BINDING_NAME}


_POLL_SCRIPT = "() => ({ stop: Boolean(window.__flowrecorderStop), scan: Boolean(window.__flowrecorderScanPending) })"
_SCAN_CANCELLED_SCRIPT = "() => Boolean(window.__flowrecorderScanCancelled)"
_TAKE_SCAN_TARGET_SCRIPT = """
() => {
  window.__flowrecorderScanPending = false;
  const target = window.__flowrecorderScanTarget || null;
  window.__flowrecorderScanTarget = null;
  return target;
}
"""

def build_logger() -> logging.Logger:
    logger = logging.getLogger("flowrecorder.session")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    logger.propagate = False
    try:
        LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(file_handler)
    except OSError:
        # Fall back to stderr when the log file cannot be opened.
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(stream_handler)
    return logger


def _now_ms() -> int:
    return int(time.time() * 1000)


def launch_browser(playwright: Playwright, settings: RecorderSettings) -> Browser:
    engine = getattr(playwright, settings.browser)
    try:
        return engine.launch(headless=settings.headless)
    except Exception as exc:
        if _is_missing_browser_error(exc):
            raise SystemExit(missing_browser_message(settings.browser)) from exc
        raise


@dataclass(frozen=True, slots=True)
class SessionResult:
    events: tuple[RecordedEvent, ...]
    written_files: tuple[Path, ...]
    errors: tuple[str, ...] = ()


class RecordingSession:
    """Records one browser session into an event log and generated tests.

    Playwright is driven from the thread that calls :meth:`run`. Page-side
    payloads arrive through an exposed binding, are resolved against the page
    inside the binding call and queued; the loop in :meth:`run` logs them
    between short waits.
    """

    def __init__(
        self,
        settings: RecorderSettings,
        logger: logging.Logger | None = None,
        clock: Callable[[], int] | None = None,
        oracle_factory: Callable[[Page], MatchOracle] | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or build_logger()
        self._clock = clock or _now_ms
        self._oracle_factory = oracle_factory or PageMatchOracle

        self._raw_events: queue.Queue[tuple[str, Any]] = queue.Queue()
        self._log = EventLog()
        self._debouncer = InputDebouncer(settings.debounce_ms)
        self._stop = threading.Event()
        self._attached_pages: set[int] = set()
        self._scan_files: list[Path] = []
        self._last_timestamp = 0

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(self, watch_stdin: bool = True) -> SessionResult:
        url = normalize_url(self.settings.url)
        if not url:
            raise ValueError("A URL is required to start recording.")

        from playwright.sync_api import sync_playwright

        if watch_stdin:
            self._start_stdin_watcher()

        with sync_playwright() as playwright:
            browser = launch_browser(playwright, self.settings)
            try:
                context = browser.new_context()
                context.expose_binding(BINDING_NAME, self._on_binding)
                context.add_init_script(CAPTURE_SCRIPT)
                context.on("page", self._attach_page)

                page = context.new_page()
                self._attach_page(page)
                self.logger.info("Recording started: %s (%s)", url, self.settings.browser)
                page.goto(url, wait_until="domcontentloaded")
                self._event_loop(page)
                self._drain_queue()
            finally:
                try:
                    browser.close()
                except Exception as exc:
                    if not is_closed_target_error(exc):
                        self.logger.warning("Failed to close browser: %s", exc)

        return self.finish()

    def finish(self) -> SessionResult:
        """Drain pending input, freeze the log and write every output file."""
        self._drain_queue()
        for event in self._debouncer.flush_all():
            self._append(event)
        frozen = self._log.freeze()
        self.logger.info("Recording stopped with %s events.", len(frozen))

        output_dir = Path(self.settings.output_dir or ".")
        written: list[Path] = []
        errors: list[str] = []

        log_path = output_dir / EVENT_LOG_FILENAME
        ok, error = save_event_log(frozen, log_path)
        if ok:
            written.append(log_path)
        else:
            errors.append(error or f"Could not write {log_path}.")
            self.logger.warning("Failed to save event log: %s", error)
        written.extend(self._scan_files)

        paths, write_errors = write_generated_tests(frozen, output_dir)
        written.extend(paths)
        errors.extend(write_errors)
        for message in write_errors:
            self.logger.warning(message)
        return SessionResult(events=frozen, written_files=tuple(written), errors=tuple(errors))

    def handle_payload(self, page: Page | None, payload: Mapping[str, Any]) -> None:
        """Turn one page-side payload into a logged event (inputs are debounced)."""
        wire = self.resolve_payload(page, payload)
        if wire is not None:
            self.record_wire(wire)

    def resolve_payload(self, page: Page | None, payload: Mapping[str, Any]) -> dict[str, Any] | None:
        """Attach the resolved locator to a raw payload, or None when it cannot be used.

        Match counts are taken from ``page`` as it is now, so this must run
        while the document that produced the payload is still loaded.
        """
        raw_type = str(payload.get("type") or "")
        snapshot_payload = payload.get("snapshot")
        if not isinstance(snapshot_payload, Mapping):
            self.logger.debug("Dropped %s payload without a snapshot.", raw_type or "unknown")
            return None

        try:
            snapshot = snapshot_from_payload(snapshot_payload)
        except ValueError as exc:
            self.logger.debug("Dropped %s payload: %s", raw_type, exc)
            return None

        oracle = self._oracle_factory(page) if page is not None else None
        candidates = generate(snapshot, oracle)
        resolution = resolve(snapshot, candidates, oracle)
        locator = resolution.candidate.to_locator()
        self.logger.debug("Resolved %s via %s: %s", raw_type, resolution.strategy, locator.key())

        wire = {key: value for key, value in payload.items() if key != "snapshot"}
        wire.update({"css": locator.css, "xpath": locator.xpath, "playwright": locator.framework})
        wire.setdefault("timestamp", self._clock())
        return wire

    def record_wire(self, wire: Mapping[str, Any]) -> None:
        try:
            event = event_from_wire(wire)
        except EventDecodeError as exc:
            self.logger.warning("Dropped malformed %s event: %s", wire.get("type"), exc)
            return

        if isinstance(event, InputEvent):
            self._debouncer.observe(event.locator.key(), event, event.timestamp)
            return

        # Typed text always precedes the action that follows it.
        for pending in self._debouncer.flush_all():
            self._append(pending)
        self._append(event)
        self.logger.info("Recorded %s: %s", event.wire_type, event.locator.key())

    def handle_navigation(self, url: str) -> None:
        if not url or url == "about:blank":
            return
        for pending in self._debouncer.flush_all():
            self._append(pending)
        self._append(NavigationEvent(timestamp=self._clock(), url=url))
        self.logger.info("Recorded navigation: %s", url)

    def _append(self, event: RecordedEvent) -> None:
        # Page clocks may drift between tabs; keep the log ordered.
        if event.timestamp < self._last_timestamp:
            event = replace(event, timestamp=self._last_timestamp)
        self._log.append(event)
        self._last_timestamp = event.timestamp

    def run_section_scan(self, page: Page) -> list[ElementDescriptor] | None:
        """Scan the region picked in the page with Alt+Shift+R and a click.

        Escape in the page stops the scan early; the elements described so
        far are still saved.
        """
        root = page.evaluate_handle(_TAKE_SCAN_TARGET_SCRIPT).as_element()
        if root is None:
            return None

        descriptors = scan_page(
            page,
            root,
            cancelled=lambda: bool(page.evaluate(_SCAN_CANCELLED_SCRIPT)),
            oracle=self._oracle_factory(page),
        )
        path = Path(self.settings.output_dir or ".") / SCAN_RESULTS_FILENAME
        ok, error = save_scan_results(descriptors, path)
        if not ok:
            self.logger.warning("Failed to save scan results: %s", error)
            return descriptors
        if path not in self._scan_files:
            self._scan_files.append(path)
        self.logger.info("Section scan described %s elements in %s", len(descriptors), path)
        return descriptors

    def _attach_page(self, page: Page) -> None:
        if id(page) in self._attached_pages:
            return
        self._attached_pages.add(id(page))
        page.on("framenavigated", lambda frame: self._on_frame_navigated(page, frame))
        self.logger.info("Attached to page: %s", page.url or "about:blank")

    def _on_frame_navigated(self, page: Page, frame: Frame) -> None:
        if frame != page.main_frame:
            return
        self._raw_events.put(("navigation", frame.url))

    def _on_binding(self, source: Mapping[str, Any], payload: Any) -> None:
        if not isinstance(payload, Mapping):
            return
        # Counts must come from the document that fired the event.
        try:
            wire = self.resolve_payload(source.get("page"), payload)
        except Exception as exc:
            if not is_closed_target_error(exc):
                raise
            self.logger.debug("Dropped %s from a closed page: %s", payload.get("type"), exc)
            return
        if wire is not None:
            self._raw_events.put(("event", wire))

    def _event_loop(self, page: Page) -> None:
        interval_ms = max(1, int(self.settings.poll_interval_ms))
        while not self._stop.is_set():
            self._drain_queue()
            for event in self._debouncer.flush_due(self._clock()):
                self._append(event)
            try:
                if page.is_closed():
                    self.logger.info("Recorded page was closed.")
                    break
                state = page.evaluate(_POLL_SCRIPT) or {}
                if state.get("stop"):
                    self.logger.info("Stop requested from the page.")
                    break
                if state.get("scan"):
                    self.run_section_scan(page)
                page.wait_for_timeout(interval_ms)
            except Exception as exc:
                if is_closed_target_error(exc):
                    self.logger.info("Browser closed; ending session.")
                    break
                # Navigation can destroy the evaluation context mid-poll.
                self.logger.debug("Stop poll failed: %s", exc)
                time.sleep(interval_ms / 1000)

    def _drain_queue(self) -> None:
        while True:
            try:
                kind, item = self._raw_events.get_nowait()
            except queue.Empty:
                return
            if kind == "navigation":
                self.handle_navigation(str(item))
            else:
                self.record_wire(item)

    def _start_stdin_watcher(self) -> None:
        def _watch() -> None:
            line = sys.stdin.readline()
            if line:
                self.request_stop()

        threading.Thread(target=_watch, daemon=True).start()


def write_generated_tests(events: Sequence[RecordedEvent], output_dir: Path) -> tuple[list[Path], list[str]]:
    written: list[Path] = []
    errors: list[str] = []
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return written, [f"Could not create output folder: {exc}"]

    for target, body in emit_all(events).items():
        path = output_dir / OUTPUT_FILENAMES[target]
        try:
            path.write_text(build_test_file(target, body), encoding="utf-8")
        except OSError as exc:
            errors.append(f"Could not write {path}: {exc}")
            continue
        written.append(path)
    return written, errors


def replay_events(page: Page, events: Iterable[RecordedEvent], logger: logging.Logger | None = None) -> int:
    """Replay clicks, typing and navigation; returns how many steps ran."""
    log = logger or logging.getLogger(__name__)
    replayed = 0
    for event in events:
        if isinstance(event, NavigationEvent):
            page.goto(event.url)
            replayed += 1
            continue

        selector = replay_selector(event.locator)
        if selector is None:
            log.warning("Skipped %s step without a css or xpath locator.", event.wire_type)
            continue
        if isinstance(event, ClickEvent):
            page.click(selector)
        elif isinstance(event, InputEvent):
            page.fill(selector, event.value)
        elif isinstance(event, PressEvent):
            page.press(selector, event.key)
        elif isinstance(event, CheckEvent):
            page.set_checked(selector, event.checked)
        elif isinstance(event, SelectEvent):
            page.select_option(selector, event.value)
        else:
            log.info("Replay does not support %s steps; skipped.", event.wire_type)
            continue
        replayed += 1
        log.info("Replayed %s on %s", event.wire_type, selector)
    return replayed


def replay_selector(locator: LocatorRef) -> str | None:
    if locator.css:
        return locator.css
    if locator.xpath:
        return f"xpath={locator.xpath}"
    return None


def run_replay(settings: RecorderSettings, events: Sequence[RecordedEvent], logger: logging.Logger | None = None) -> int:
    from playwright.sync_api import sync_playwright

    log = logger or build_logger()
    url = normalize_url(settings.url)
    with sync_playwright() as playwright:
        browser = launch_browser(playwright, settings)
        try:
            page = browser.new_page()
            if url:
                page.goto(url)
            replayed = replay_events(page, events, log)
        finally:
            browser.close()
    log.info("Replay finished: %s of %s steps.", replayed, len(events))
    return replayed


def run_scan(
    settings: RecorderSettings,
    logger: logging.Logger | None = None,
    selector: str | None = None,
) -> list[ElementDescriptor]:
    """Scan the page at ``settings.url``, or only the first element matching ``selector``."""
    from playwright.sync_api import sync_playwright

    log = logger or build_logger()
    with sync_playwright() as playwright:
        browser = launch_browser(playwright, settings)
        try:
            page = browser.new_page()
            page.goto(normalize_url(settings.url), wait_until="domcontentloaded")
            root = None
            if selector:
                root = page.query_selector(selector)
                if root is None:
                    raise ValueError(f"No element matches {selector!r} on {settings.url}.")
            descriptors = scan_page(page, root)
        finally:
            browser.close()
    log.info("Scan found %s elements on %s", len(descriptors), settings.url)
    return descriptors
