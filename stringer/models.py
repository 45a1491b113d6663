"""Core data models shared across stringer components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorMode(str, Enum):
    """How the pipeline reacts when a collector fails."""

    WARN = "warn"
    SKIP = "skip"
    FAIL = "fail"

    @classmethod
    def parse(cls, value: "str | ErrorMode | None") -> "ErrorMode":
        if value is None or value == "":
            return cls.WARN
        if isinstance(value, ErrorMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"invalid error mode {value!r} (must be one of: {choices})") from None


@dataclass(frozen=True)
class RawSignal:
    """One actionable finding emitted by a collector."""

    source: str
    kind: str
    title: str
    file_path: str = ""
    line: int = 0
    description: str = ""
    confidence: float = 0.0
    tags: Tuple[str, ...] = ()
    timestamp: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    author: str = ""
    workspace: str = ""


@dataclass
class CollectorOpts:
    """Per-collector options applied by the pipeline and passed to the collector."""

    min_confidence: float = 0.0
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    error_mode: ErrorMode = ErrorMode.WARN
    timeout: Optional[float] = None
    git_depth: int = 0
    git_since: Optional[str] = None
    git_root: Optional[str] = None
    large_file_threshold: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.error_mode = ErrorMode.parse(self.error_mode)


@dataclass
class ScanConfig:
    """Everything a pipeline invocation needs to know."""

    repo_path: str
    collectors: List[str] = field(default_factory=list)
    output_format: str = "json"
    max_issues: int = 0
    collector_opts: Dict[str, CollectorOpts] = field(default_factory=dict)
    exclude_patterns: List[str] = field(default_factory=list)

    def opts_for(self, name: str) -> CollectorOpts:
        return self.collector_opts.get(name) or CollectorOpts()


@dataclass
class CollectorResult:
    """One collector's contribution to a scan."""

    collector: str
    signals: List[RawSignal] = field(default_factory=list)
    error: Optional[BaseException] = None
    status: str = "ok"
    duration: float = 0.0
    filtered: int = 0


@dataclass
class ScanResult:
    """Aggregate pipeline output."""

    signals: List[RawSignal] = field(default_factory=list)
    results: List[CollectorResult] = field(default_factory=list)
    duration: float = 0.0

    def collector_names(self) -> List[str]:
        return [result.collector for result in self.results]


@dataclass(frozen=True)
class SignalMeta:
    """Persisted projection of a signal, enough to diff and describe it."""

    hash: str
    source: str
    kind: str
    file_path: str
    title: str
    line: int = 0


@dataclass
class ScanState:
    """Persisted snapshot of one scan's signal identities."""

    version: str
    scan_timestamp: datetime
    git_head: str
    collectors: List[str]
    signal_hashes: List[str]
    signal_metas: Optional[List[SignalMeta]]
    signal_count: int


@dataclass(frozen=True)
class HistoryEntry:
    """Aggregate counters captured for a single scan."""

    timestamp: datetime
    git_head: str
    total_signals: int
    collector_counts: Dict[str, int] = field(default_factory=dict)
    kind_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class ScanHistory:
    """Bounded, append-only series of history entries."""

    version: str
    entries: List[HistoryEntry] = field(default_factory=list)
