"""Scan command orchestration: pipeline, delta filtering, state, and history."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .collectors import CollectorRegistry, discover_collectors
from .collectors.base import CancelToken
from .config import load_config, to_scan_config, validate_config
from .diff import DiffResult, build_resolved_todo_signals, compute_diff
from .errors import StateError
from .git import HeadResolver
from .logging import get_logger
from .models import HistoryEntry, RawSignal, ScanHistory, ScanResult, ScanState
from .pipeline import Pipeline
from .render import SummaryRenderer
from .signals import fingerprint
from .stores.history import HistoryStore, append_entry, build_history_entry
from .stores.scan_state import StateStore, collectors_match, filter_new
from .trends import DEFAULT_WINDOW_SIZE, TrendResult, compute_trends


@dataclass
class ScanOutcome:
    """Everything a scan command produced."""

    result: ScanResult
    signals: List[RawSignal]
    delta: bool = False
    diffs: Dict[str, DiffResult] = field(default_factory=dict)
    diff_summary: str = ""
    resolved: List[RawSignal] = field(default_factory=list)
    trends: Optional[TrendResult] = None
    state_paths: List[Path] = field(default_factory=list)


class ScanOrchestrator:
    """Coordinates a scan command from configuration to persisted state."""

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        head_resolver: Callable[[str | Path], str] | None = None,
        renderer: SummaryRenderer | None = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        self._registry = registry
        self._head_resolver = head_resolver or HeadResolver()
        self.renderer = renderer or SummaryRenderer()
        self.window_size = window_size
        self.logger = get_logger("orchestrator")

    def run_scan(
        self,
        path: str | Path,
        *,
        collectors: Sequence[str] | None = None,
        delta: bool = False,
        save_state: bool = True,
        record_history: bool = True,
        workspaces: Iterable[str] = (),
        token: CancelToken | None = None,
    ) -> ScanOutcome:
        """Run the pipeline and, for delta scans, report only unseen signals.

        Prior state that cannot be read downgrades the run to a full scan.
        """
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.is_dir():
            raise FileNotFoundError(f"{repo_path} is not a directory")
        self.logger.info("Starting scan of %s", repo_path)

        registry = self._registry if self._registry is not None else discover_collectors()
        config = load_config(repo_path)
        validate_config(config, registry.names())
        scan_config = to_scan_config(
            config, repo_path, collectors=collectors, known_collectors=registry.names()
        )
        pipeline = Pipeline.from_registry(scan_config, registry)
        self.logger.debug(
            "Selected collectors: %s",
            ", ".join(c.name for c in pipeline.collectors) or "(none)",
        )

        result = pipeline.run(token)
        self.logger.info(
            "Collected %d signal(s) from %d collector(s) in %.2fs",
            len(result.signals),
            len(result.results),
            result.duration,
        )

        store = StateStore(repo_path, head_resolver=self._head_resolver)
        collector_names = [collector.name for collector in pipeline.collectors]
        grouped = _group_by_workspace(result.signals, workspaces)
        outcome = ScanOutcome(result=result, signals=list(result.signals), delta=delta)

        if delta:
            new_hashes: set[str] = set()
            summaries: List[str] = []
            for workspace, signals in grouped.items():
                prev = self._load_previous(store, workspace, collector_names)
                new_hashes.update(fingerprint(signal) for signal in filter_new(signals, prev))
                if prev is None:
                    continue
                current = store.build(collector_names, signals)
                diff = compute_diff(prev, current)
                outcome.diffs[workspace] = diff
                summary = self.renderer.format_diff(diff, repo_path)
                summaries.append(f"[{workspace}]\n{summary}" if workspace else summary)
                outcome.resolved.extend(build_resolved_todo_signals(repo_path, diff.removed))
            outcome.signals = [s for s in result.signals if fingerprint(s) in new_hashes]
            outcome.diff_summary = "\n".join(summaries)
            self.logger.info(
                "Delta filter: %d total, %d new", len(result.signals), len(outcome.signals)
            )
            if outcome.resolved:
                self.logger.info("Resolved TODOs detected: %d", len(outcome.resolved))

        if save_state:
            for workspace, signals in grouped.items():
                state = store.build(collector_names, signals)
                outcome.state_paths.append(store.save(state, workspace or None))
                self.logger.info(
                    "Delta state saved%s (%d hashes)",
                    f" for workspace {workspace}" if workspace else "",
                    state.signal_count,
                )

        if record_history:
            outcome.trends = self._record_history(repo_path, result, grouped)

        return outcome

    def load_trends(
        self, path: str | Path, *, workspace: str | None = None, window_size: int | None = None
    ) -> Optional[TrendResult]:
        history = HistoryStore(Path(path).expanduser().resolve()).load(workspace)
        return compute_trends(history, window_size or self.window_size)

    # ------------------------------------------------------------------
    # Internals

    def _load_previous(
        self, store: StateStore, workspace: str, collector_names: Sequence[str]
    ) -> Optional[ScanState]:
        try:
            prev = store.load(workspace or None)
        except StateError as exc:
            self.logger.warning("Ignoring unreadable delta state, running a full scan: %s", exc)
            return None
        if prev is not None and not collectors_match(prev, collector_names):
            self.logger.warning(
                "Collector set changed since the previous scan (%s -> %s); treating all signals as new",
                ", ".join(prev.collectors) or "(none)",
                ", ".join(sorted(collector_names)) or "(none)",
            )
            return None
        return prev

    def _record_history(
        self, repo_path: Path, result: ScanResult, grouped: Dict[str, List[RawSignal]]
    ) -> Optional[TrendResult]:
        """Append to the repository history and to each workspace's own history.

        Returns the trends of the repository-wide history.
        """
        history_store = HistoryStore(repo_path)
        git_head = self._head_resolver(repo_path)
        history = self._append_history(history_store, None, build_history_entry(result, git_head))
        for workspace, signals in grouped.items():
            if not workspace:
                continue
            entry = build_history_entry(_scoped_result(result, workspace, signals), git_head)
            self._append_history(history_store, workspace, entry)
        return compute_trends(history, self.window_size)

    def _append_history(
        self, history_store: HistoryStore, workspace: str | None, entry: HistoryEntry
    ) -> ScanHistory:
        try:
            history = history_store.load(workspace)
        except StateError as exc:
            self.logger.warning("Starting a new scan history: %s", exc)
            history = None
        history = append_entry(history, entry)
        try:
            history_store.save(history, workspace)
        except StateError as exc:
            self.logger.warning("Failed to save scan history: %s", exc)
        return history


def _group_by_workspace(
    signals: Sequence[RawSignal], workspaces: Iterable[str]
) -> Dict[str, List[RawSignal]]:
    grouped: Dict[str, List[RawSignal]] = {"": []}
    for name in workspaces:
        grouped.setdefault(name, [])
    for signal in signals:
        grouped.setdefault(signal.workspace, []).append(signal)
    if not grouped[""] and len(grouped) > 1:
        # Root scope only persists when it actually owns signals.
        del grouped[""]
    return grouped


def _scoped_result(result: ScanResult, workspace: str, signals: List[RawSignal]) -> ScanResult:
    return ScanResult(
        signals=list(signals),
        results=[
            replace(item, signals=[s for s in item.signals if s.workspace == workspace])
            for item in result.results
        ],
        duration=result.duration,
    )


__all__ = ["ScanOrchestrator", "ScanOutcome"]
