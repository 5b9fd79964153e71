from __future__ import annotations

from pathlib import Path
import tempfile


def write_text_atomic(path: Path, text: str, label: str) -> tuple[bool, str | None]:
    """Write ``text`` next to ``path`` and move it into place.

    Returns ``(ok, error)``; ``label`` names the file in error messages. A
    partially written temporary file is removed on failure.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return False, f"Could not create folder for {label}: {exc}"

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(text)
            handle.flush()
        temp_path.replace(path)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Could not write {label}: {exc}"

    return True, None
