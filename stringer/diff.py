"""Scan-to-scan comparison of persisted signal sets."""

from __future__ import annotations

import posixpath
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Sequence, Set, Tuple

from .models import RawSignal, ScanState, SignalMeta

RESOLUTION_FILE_DELETED = "file_deleted"

RESOLVED_TODO_SOURCE = "todos"
RESOLVED_TODO_CONFIDENCE = 0.3
RESOLVED_TODO_TAGS = ("pre-closed", "resolved", "stringer-generated")


@dataclass(frozen=True)
class MovedSignal:
    """A removed and an added signal judged to be the same relocated item."""

    previous: SignalMeta
    current: SignalMeta


@dataclass
class DiffResult:
    """Partition of the symmetric difference between two scan states."""

    added: List[SignalMeta] = field(default_factory=list)
    removed: List[SignalMeta] = field(default_factory=list)
    moved: List[MovedSignal] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added or self.removed or self.moved)


@dataclass(frozen=True)
class AnnotatedSignal:
    """A removed signal plus a hint about why it disappeared."""

    meta: SignalMeta
    resolution: str = ""


def compute_diff(prev: ScanState, current: ScanState) -> DiffResult:
    """Classify fingerprint changes between ``prev`` and ``current``.

    A removed/added pair sharing title and kind but not location is reported
    as moved. Candidates are matched first-come in the order they appear in
    ``current``, so two textually identical but unrelated signals can pair up.
    States without ``signal_metas`` (schema v1) contribute no metadata.
    """
    prev_metas = prev.signal_metas or []
    current_metas = current.signal_metas or []
    prev_hashes = {meta.hash for meta in prev_metas}
    current_hashes = {meta.hash for meta in current_metas}

    raw_added = [meta for meta in current_metas if meta.hash not in prev_hashes]
    raw_removed = [meta for meta in prev_metas if meta.hash not in current_hashes]

    added_by_key: Dict[Tuple[str, str], List[int]] = defaultdict(list)
    for index, meta in enumerate(raw_added):
        added_by_key[(meta.title, meta.kind)].append(index)

    result = DiffResult()
    claimed_added: Set[int] = set()
    claimed_removed: Set[int] = set()
    for removed_index, removed in enumerate(raw_removed):
        for added_index in added_by_key.get((removed.title, removed.kind), ()):
            if added_index in claimed_added:
                continue
            added = raw_added[added_index]
            if added.file_path == removed.file_path and added.line == removed.line:
                continue
            result.moved.append(MovedSignal(previous=removed, current=added))
            claimed_added.add(added_index)
            claimed_removed.add(removed_index)
            break

    result.added = [meta for i, meta in enumerate(raw_added) if i not in claimed_added]
    result.removed = [meta for i, meta in enumerate(raw_removed) if i not in claimed_removed]
    return result


def annotate_removed_signals(
    repo_path: str | Path, removed: Sequence[SignalMeta]
) -> List[AnnotatedSignal]:
    """Mark removed signals whose file no longer exists as ``file_deleted``."""
    root = Path(repo_path)
    annotated: List[AnnotatedSignal] = []
    for meta in removed:
        resolution = ""
        if meta.file_path and not (root / meta.file_path).exists():
            resolution = RESOLUTION_FILE_DELETED
        annotated.append(AnnotatedSignal(meta=meta, resolution=resolution))
    return annotated


def build_resolved_todo_signals(
    repo_path: str | Path,
    removed: Sequence[SignalMeta],
    *,
    now: datetime | None = None,
) -> List[RawSignal]:
    """Turn removed TODO-style signals into closed signals for issue sync.

    Downstream trackers match these by title and location to auto-close the
    ticket that the removed TODO produced.
    """
    closed_at = now or datetime.now(UTC)
    signals: List[RawSignal] = []
    for item in annotate_removed_signals(repo_path, removed):
        meta = item.meta
        if meta.source != RESOLVED_TODO_SOURCE:
            continue
        location = format_location(meta)
        description = f"Resolved {meta.kind.upper()} previously at {location}"
        if item.resolution == RESOLUTION_FILE_DELETED:
            description += " (file deleted)"
        description += f".\nModule: {module_from_file_path(meta.file_path)}"
        signals.append(
            RawSignal(
                source=meta.source,
                kind=meta.kind,
                title=meta.title,
                file_path=meta.file_path,
                line=meta.line,
                description=description,
                confidence=RESOLVED_TODO_CONFIDENCE,
                tags=(meta.kind, *RESOLVED_TODO_TAGS),
                timestamp=closed_at,
                closed_at=closed_at,
            )
        )
    return signals


def module_from_file_path(path: str) -> str:
    directory = posixpath.dirname(path.replace("\\", "/"))
    return directory or "."


def format_location(meta: SignalMeta) -> str:
    if meta.line > 0:
        return f"{meta.file_path}:{meta.line}"
    return meta.file_path


__all__ = [
    "AnnotatedSignal",
    "DiffResult",
    "MovedSignal",
    "RESOLUTION_FILE_DELETED",
    "annotate_removed_signals",
    "build_resolved_todo_signals",
    "compute_diff",
    "format_location",
    "module_from_file_path",
]
