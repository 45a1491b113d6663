"""Shared file handling for the persisted state directory."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

from ..errors import StateError

STATE_DIR = ".stringer"

_DIR_MODE = 0o750
_FILE_MODE = 0o644


def state_directory(repo_path: str | Path, workspace: str | None = None) -> Path:
    """Return ``<repo>/.stringer`` or ``<repo>/.stringer/<workspace>``."""
    root = Path(repo_path) / STATE_DIR
    if not workspace:
        return root
    if (
        workspace in {".", ".."}
        or "/" in workspace
        or "\\" in workspace
        or workspace.strip() != workspace
    ):
        raise StateError(f"Invalid workspace name: {workspace!r}")
    return root / workspace


def read_json(path: Path) -> Optional[Any]:
    """Load JSON from ``path``; ``None`` when the file does not exist."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StateError(f"Unable to read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StateError(f"Corrupt state file {path}: {exc}") from exc


def write_json_atomic(path: Path, payload: Any) -> None:
    """Replace ``path`` with ``payload`` in one step (temp file + rename)."""
    try:
        path.parent.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.write("\n")
            os.chmod(tmp_name, _FILE_MODE)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise StateError(f"Unable to write {path}: {exc}") from exc


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: object) -> datetime:
    if not isinstance(value, str) or not value:
        raise StateError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Trim sub-microsecond precision written by other tools.
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = tail
        while rest and rest[0].isdigit():
            digits += rest[0]
            rest = rest[1:]
        text = f"{head}.{digits[:6]}{rest}" if digits else f"{head}{rest}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise StateError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


__all__ = [
    "STATE_DIR",
    "format_timestamp",
    "parse_timestamp",
    "read_json",
    "state_directory",
    "write_json_atomic",
]
