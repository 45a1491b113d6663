"""Persisted scan state for delta scanning.

A delta scan records the fingerprint of every signal it produced. The next
run loads that record, reports only signals whose fingerprints are new, and
diffs the two snapshots. Version 1 files only carry ``signal_hashes``;
version 2 adds ``signal_metas`` so removed and moved signals can be described
without re-running collectors.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import StateError
from ..git import HeadResolver
from ..models import RawSignal, ScanState, SignalMeta
from ..signals import fingerprint, normalize_path
from .files import format_timestamp, parse_timestamp, read_json, state_directory, write_json_atomic

STATE_FILE = "last-scan.json"
SCHEMA_VERSION = "2"
_SUPPORTED_VERSIONS = {"1", "2"}


class StateStore:
    """Loads, saves, and builds :class:`ScanState` snapshots for one repository."""

    def __init__(
        self,
        repo_path: str | Path,
        *,
        head_resolver: Callable[[str | Path], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path)
        self._resolve_head = head_resolver or HeadResolver()
        self._clock = clock or (lambda: datetime.now(UTC))

    def path(self, workspace: str | None = None) -> Path:
        return state_directory(self.repo_path, workspace) / STATE_FILE

    def load(self, workspace: str | None = None) -> Optional[ScanState]:
        """Return the last saved state, or ``None`` when there is none yet.

        Raises :class:`StateError` for unreadable or malformed files.
        """
        path = self.path(workspace)
        data = read_json(path)
        if data is None:
            return None
        try:
            return state_from_dict(data)
        except StateError as exc:
            raise StateError(f"Corrupt state file {path}: {exc}") from exc

    def save(self, state: ScanState, workspace: str | None = None) -> Path:
        path = self.path(workspace)
        write_json_atomic(path, state_to_dict(state))
        return path

    def build(self, collectors: Sequence[str], signals: Sequence[RawSignal]) -> ScanState:
        hashes: List[str] = []
        metas: List[SignalMeta] = []
        for signal in signals:
            meta = signal_meta(signal)
            hashes.append(meta.hash)
            metas.append(meta)
        return ScanState(
            version=SCHEMA_VERSION,
            scan_timestamp=self._clock(),
            git_head=self._resolve_head(self.repo_path),
            collectors=sorted(collectors),
            signal_hashes=hashes,
            signal_metas=metas,
            signal_count=len(signals),
        )


def signal_meta(signal: RawSignal) -> SignalMeta:
    return SignalMeta(
        hash=fingerprint(signal),
        source=signal.source,
        kind=signal.kind,
        file_path=normalize_path(signal.file_path),
        line=signal.line,
        title=signal.title,
    )


def collectors_match(prev: Optional[ScanState], current: Sequence[str]) -> bool:
    """True when ``prev`` ran exactly the collectors in ``current``."""
    if prev is None:
        return True
    return sorted(prev.collectors) == sorted(current)


def filter_new(signals: Sequence[RawSignal], prev: Optional[ScanState]) -> List[RawSignal]:
    """Return the signals whose fingerprints ``prev`` has not seen, in order."""
    if prev is None or not prev.signal_hashes:
        return list(signals)
    seen = set(prev.signal_hashes)
    return [signal for signal in signals if fingerprint(signal) not in seen]


def state_to_dict(state: ScanState) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "version": state.version,
        "scan_timestamp": format_timestamp(state.scan_timestamp),
        "git_head": state.git_head,
        "collectors": list(state.collectors),
        "signal_hashes": list(state.signal_hashes),
    }
    if state.signal_metas is not None:
        payload["signal_metas"] = [_meta_to_dict(meta) for meta in state.signal_metas]
    payload["signal_count"] = state.signal_count
    return payload


def state_from_dict(data: object) -> ScanState:
    if not isinstance(data, dict):
        raise StateError("state must be a JSON object")
    version = str(data.get("version", ""))
    if version not in _SUPPORTED_VERSIONS:
        raise StateError(f"unsupported state version {version!r}")
    hashes = data.get("signal_hashes") or []
    if not isinstance(hashes, list) or not all(isinstance(item, str) for item in hashes):
        raise StateError("signal_hashes must be a list of strings")
    collectors = data.get("collectors") or []
    if not isinstance(collectors, list) or not all(isinstance(item, str) for item in collectors):
        raise StateError("collectors must be a list of strings")

    metas: Optional[List[SignalMeta]] = None
    raw_metas = data.get("signal_metas")
    if raw_metas is not None:
        if not isinstance(raw_metas, list):
            raise StateError("signal_metas must be a list")
        metas = [_meta_from_dict(item) for item in raw_metas]

    count = data.get("signal_count", len(hashes))
    if not isinstance(count, int) or isinstance(count, bool):
        raise StateError("signal_count must be an integer")

    if version == SCHEMA_VERSION:
        # Writers may omit an empty metas list, never a populated one.
        if metas is None:
            if hashes:
                raise StateError("version 2 state is missing signal_metas")
            metas = []
        if count != len(hashes):
            raise StateError(
                f"signal_count {count} does not match {len(hashes)} signal_hashes"
            )
    if metas is not None and len(metas) != len(hashes):
        raise StateError(
            f"signal_metas has {len(metas)} entries but signal_hashes has {len(hashes)}"
        )

    git_head = data.get("git_head") or ""
    if not isinstance(git_head, str):
        raise StateError("git_head must be a string")

    return ScanState(
        version=version,
        scan_timestamp=parse_timestamp(data.get("scan_timestamp")),
        git_head=git_head,
        collectors=list(collectors),
        signal_hashes=list(hashes),
        signal_metas=metas,
        signal_count=count,
    )


def _meta_to_dict(meta: SignalMeta) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "hash": meta.hash,
        "source": meta.source,
        "kind": meta.kind,
        "file_path": meta.file_path,
    }
    if meta.line:
        payload["line"] = meta.line
    payload["title"] = meta.title
    return payload


def _meta_from_dict(payload: object) -> SignalMeta:
    if not isinstance(payload, dict):
        raise StateError("signal_metas entries must be objects")
    fields = {}
    for key in ("hash", "source", "kind", "file_path", "title"):
        value = payload.get(key, "")
        if not isinstance(value, str):
            raise StateError(f"signal_metas.{key} must be a string")
        fields[key] = value
    line = payload.get("line", 0)
    if not isinstance(line, int) or isinstance(line, bool):
        raise StateError("signal_metas.line must be an integer")
    return SignalMeta(line=line, **fields)


__all__ = [
    "SCHEMA_VERSION",
    "STATE_FILE",
    "StateStore",
    "collectors_match",
    "filter_new",
    "signal_meta",
    "state_from_dict",
    "state_to_dict",
]
