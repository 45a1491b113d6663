"""Bounded scan history used for trend reporting."""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Optional

from ..errors import StateError
from ..models import HistoryEntry, ScanHistory, ScanResult
from .files import format_timestamp, parse_timestamp, read_json, state_directory, write_json_atomic

HISTORY_FILE = "scan-history.json"
HISTORY_SCHEMA_VERSION = "1"
MAX_HISTORY_ENTRIES = 100


class HistoryStore:
    """Reads and writes ``scan-history.json`` for a repository."""

    def __init__(self, repo_path: str | Path) -> None:
        self.repo_path = Path(repo_path)

    def path(self, workspace: str | None = None) -> Path:
        return state_directory(self.repo_path, workspace) / HISTORY_FILE

    def load(self, workspace: str | None = None) -> Optional[ScanHistory]:
        path = self.path(workspace)
        data = read_json(path)
        if data is None:
            return None
        try:
            return history_from_dict(data)
        except StateError as exc:
            raise StateError(f"Corrupt history file {path}: {exc}") from exc

    def save(self, history: ScanHistory, workspace: str | None = None) -> Path:
        path = self.path(workspace)
        write_json_atomic(path, history_to_dict(history))
        return path


def append_entry(
    history: Optional[ScanHistory],
    entry: HistoryEntry,
    *,
    max_entries: int = MAX_HISTORY_ENTRIES,
) -> ScanHistory:
    """Append ``entry`` and drop the oldest entries beyond ``max_entries``."""
    if history is None:
        history = ScanHistory(version=HISTORY_SCHEMA_VERSION)
    history.version = HISTORY_SCHEMA_VERSION
    history.entries.append(entry)
    if len(history.entries) > max_entries:
        del history.entries[: len(history.entries) - max_entries]
    return history


def build_history_entry(
    result: ScanResult, git_head: str = "", *, timestamp: datetime | None = None
) -> HistoryEntry:
    collector_counts = {item.collector: len(item.signals) for item in result.results}
    kind_counts = Counter(signal.kind for signal in result.signals)
    return HistoryEntry(
        timestamp=timestamp or datetime.now(UTC),
        git_head=git_head,
        total_signals=len(result.signals),
        collector_counts=dict(sorted(collector_counts.items())),
        kind_counts=dict(sorted(kind_counts.items())),
    )


def history_to_dict(history: ScanHistory) -> Dict[str, object]:
    return {
        "version": history.version,
        "entries": [
            {
                "timestamp": format_timestamp(entry.timestamp),
                "git_head": entry.git_head,
                "total_signals": entry.total_signals,
                "collector_counts": dict(entry.collector_counts),
                "kind_counts": dict(entry.kind_counts),
            }
            for entry in history.entries
        ],
    }


def history_from_dict(data: object) -> ScanHistory:
    if not isinstance(data, dict):
        raise StateError("history must be a JSON object")
    entries = data.get("entries") or []
    if not isinstance(entries, list):
        raise StateError("entries must be a list")
    return ScanHistory(
        version=str(data.get("version") or HISTORY_SCHEMA_VERSION),
        entries=[_entry_from_dict(item) for item in entries],
    )


def _entry_from_dict(payload: object) -> HistoryEntry:
    if not isinstance(payload, dict):
        raise StateError("history entries must be objects")
    total = payload.get("total_signals", 0)
    if not isinstance(total, int) or isinstance(total, bool):
        raise StateError("total_signals must be an integer")
    return HistoryEntry(
        timestamp=parse_timestamp(payload.get("timestamp")),
        git_head=str(payload.get("git_head") or ""),
        total_signals=total,
        collector_counts=_counts(payload.get("collector_counts"), "collector_counts"),
        kind_counts=_counts(payload.get("kind_counts"), "kind_counts"),
    )


def _counts(value: object, label: str) -> Dict[str, int]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise StateError(f"{label} must be an object")
    counts: Dict[str, int] = {}
    for key, count in value.items():
        if not isinstance(count, int) or isinstance(count, bool):
            raise StateError(f"{label}.{key} must be an integer")
        counts[str(key)] = count
    return counts


__all__ = [
    "HISTORY_FILE",
    "HISTORY_SCHEMA_VERSION",
    "HistoryStore",
    "MAX_HISTORY_ENTRIES",
    "append_entry",
    "build_history_entry",
    "history_from_dict",
    "history_to_dict",
]
