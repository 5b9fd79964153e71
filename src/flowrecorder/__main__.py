from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Sequence

from .runtime_checks import ensure_supported_python
from .settings import SUPPORTED_BROWSERS, RecorderSettings, load_settings, merge_cli_overrides

_COMMENT_PREFIXES = {"playwright": "//", "selenium-python": "#", "selenium-java": "//"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowrecorder",
        description="Record a browser session and generate Playwright and Selenium tests from it.",
    )
    parser.add_argument("--url", help="Page to open when recording or replaying.")
    parser.add_argument("--browser", choices=SUPPORTED_BROWSERS, help="Playwright browser engine.")
    parser.add_argument("--replay", metavar="PATH", help="Replay a saved recordedSteps.json instead of recording.")
    parser.add_argument("--output-dir", metavar="DIR", help="Where the event log and generated tests are written.")
    parser.add_argument("--headless", action="store_true", default=None, help="Run the browser without a window.")
    parser.add_argument("--emit", metavar="LOG", help="Print generated code for a saved event log and exit.")
    parser.add_argument("--scan", action="store_true", help="Print locators for the interactive elements of --url.")
    parser.add_argument("--scan-selector", metavar="CSS", help="With --scan, only describe elements inside the first match of CSS.")
    parser.add_argument("--config", metavar="PATH", help="Settings file (defaults to ~/.flowrecorder/config.json).")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    ensure_supported_python()
    args = build_parser().parse_args(argv)

    if args.emit:
        return _emit(Path(args.emit))

    stored = load_settings(Path(args.config) if args.config else None)
    try:
        settings = merge_cli_overrides(
            stored,
            {
                "url": args.url,
                "browser": args.browser,
                "replay_path": args.replay,
                "output_dir": args.output_dir,
                "headless": args.headless,
            },
        )
    except ValueError as exc:
        print(f"flowrecorder: {exc}", file=sys.stderr)
        return 2

    if not settings.url and not settings.replay_path:
        print("flowrecorder: --url is required (or set it in the config file).", file=sys.stderr)
        return 2

    from .recorder import RecordingSession, build_logger, run_replay

    logger = build_logger()
    if settings.replay_path:
        from .events import EventDecodeError, load_event_log

        try:
            events = load_event_log(Path(settings.replay_path))
        except (OSError, EventDecodeError) as exc:
            print(f"flowrecorder: cannot replay {settings.replay_path}: {exc}", file=sys.stderr)
            return 1
        replayed = run_replay(settings, events, logger)
        print(f"Replay finished: {replayed} of {len(events)} steps.")
        return 0

    if args.scan or args.scan_selector:
        return _scan(settings, logger, args.scan_selector)

    print("Recording. Interact with the page, then press Enter here (or Alt+Shift+S in the page) to stop. Alt+Shift+R then a click scans a section.")
    result = RecordingSession(settings, logger=logger).run()
    for path in result.written_files:
        print(f"Wrote {path}")
    for message in result.errors:
        print(f"flowrecorder: {message}", file=sys.stderr)
    return 1 if result.errors else 0


def _emit(log_path: Path) -> int:
    from .code_emitters import emit_all
    from .events import EventDecodeError, load_event_log

    try:
        events = load_event_log(log_path)
    except (OSError, EventDecodeError) as exc:
        print(f"flowrecorder: cannot read {log_path}: {exc}", file=sys.stderr)
        return 1

    for target, code in emit_all(events).items():
        print(f"{_COMMENT_PREFIXES[target]} {target}")
        print(code)
        print()
    return 0


def _scan(settings: RecorderSettings, logger: logging.Logger, selector: str | None) -> int:
    from .recorder import run_scan

    try:
        descriptors = run_scan(settings, logger, selector)
    except ValueError as exc:
        print(f"flowrecorder: {exc}", file=sys.stderr)
        return 1
    print(json.dumps([item.to_wire() for item in descriptors], ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
