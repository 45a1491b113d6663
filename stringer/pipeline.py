"""Concurrent collector execution and result aggregation."""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from .collectors import CollectorRegistry
from .collectors.base import CancelToken, Collector
from .errors import CollectorError, CollectorTimeoutError, PipelineError
from .logging import get_logger
from .models import CollectorOpts, CollectorResult, ErrorMode, RawSignal, ScanConfig, ScanResult
from .signals import deduplicate_signals, passes_path_filters, validate_signal

# Upper bound on a single wait so external cancellation is noticed promptly.
_POLL_INTERVAL = 0.25


@dataclass
class _Job:
    index: int
    collector: Collector
    opts: CollectorOpts
    token: CancelToken
    started: float
    deadline: Optional[float]

    @property
    def name(self) -> str:
        return self.collector.name


class Pipeline:
    """Runs a fixed set of collectors in parallel and merges their output."""

    def __init__(self, config: ScanConfig, collectors: Sequence[Collector]) -> None:
        self.config = config
        self.collectors = list(collectors)
        self.logger = get_logger("pipeline")

    @classmethod
    def from_registry(cls, config: ScanConfig, registry: CollectorRegistry) -> "Pipeline":
        """Resolve ``config.collectors`` against ``registry``.

        Raises :class:`~stringer.errors.ConfigError` for unknown names before
        anything runs.
        """
        return cls(config, registry.resolve(config.collectors))

    def run(self, token: CancelToken | None = None) -> ScanResult:
        """Execute every collector and return the merged result.

        A fail-mode collector error cancels the siblings and raises
        :class:`PipelineError`. Warn-mode errors are logged and the collector's
        partial output is kept; skip-mode errors drop the collector quietly.
        """
        start = time.monotonic()
        if not self.collectors:
            return ScanResult(duration=time.monotonic() - start)

        root = token.child("pipeline") if token is not None else CancelToken(name="pipeline")
        results: List[Optional[CollectorResult]] = [None] * len(self.collectors)
        executor = ThreadPoolExecutor(
            max_workers=len(self.collectors), thread_name_prefix="stringer-collector"
        )
        pending: Dict[Future, _Job] = {}
        try:
            for index, collector in enumerate(self.collectors):
                opts = self._effective_opts(collector.name)
                started = time.monotonic()
                job = _Job(
                    index=index,
                    collector=collector,
                    opts=opts,
                    token=root.child(collector.name),
                    started=started,
                    deadline=started + opts.timeout if opts.timeout else None,
                )
                self.logger.debug("Starting collector %s", collector.name)
                future = executor.submit(self._invoke, collector, opts, job.token)
                pending[future] = job

            while pending:
                done, _ = wait(
                    list(pending),
                    timeout=self._wait_timeout(pending.values()),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    job = pending.pop(future)
                    results[job.index] = self._settle(job, future)
                self._expire(pending, results)
                if root.cancelled:
                    # Cancelled from outside: abandon whatever is still running.
                    for future, job in list(pending.items()):
                        pending.pop(future)
                        future.cancel()
                        results[job.index] = self._handle_failure(
                            job, CollectorError(job.name, "cancelled"), self._elapsed(job)
                        )
        except PipelineError as exc:
            root.cancel()
            exc.results = [result for result in results if result is not None]
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        collected = [result for result in results if result is not None]
        signals: List[RawSignal] = []
        for result in collected:
            signals.extend(result.signals)
        signals = deduplicate_signals(signals)
        if self.config.max_issues > 0 and len(signals) > self.config.max_issues:
            self.logger.info(
                "Capping %d signals to max_issues=%d", len(signals), self.config.max_issues
            )
            signals = signals[: self.config.max_issues]

        return ScanResult(
            signals=signals,
            results=collected,
            duration=time.monotonic() - start,
        )

    # ------------------------------------------------------------------
    # Internals

    def _invoke(
        self, collector: Collector, opts: CollectorOpts, token: CancelToken
    ) -> List[RawSignal]:
        token.raise_if_cancelled()
        return list(collector.collect(self.config.repo_path, opts, token))

    def _effective_opts(self, name: str) -> CollectorOpts:
        opts = self.config.opts_for(name)
        if self.config.exclude_patterns:
            opts = replace(
                opts, exclude_patterns=[*self.config.exclude_patterns, *opts.exclude_patterns]
            )
        return opts

    @staticmethod
    def _wait_timeout(jobs: Iterable[_Job]) -> float:
        deadlines = [job.deadline for job in jobs if job.deadline is not None]
        if not deadlines:
            return _POLL_INTERVAL
        return max(0.0, min(min(deadlines) - time.monotonic(), _POLL_INTERVAL))

    def _expire(
        self, pending: Dict[Future, _Job], results: List[Optional[CollectorResult]]
    ) -> None:
        now = time.monotonic()
        for future, job in list(pending.items()):
            if job.deadline is None or now < job.deadline:
                continue
            pending.pop(future)
            job.token.cancel()
            future.cancel()
            timeout = job.opts.timeout or 0.0
            results[job.index] = self._handle_failure(
                job, CollectorTimeoutError(job.name, timeout), self._elapsed(job)
            )

    def _settle(self, job: _Job, future: Future) -> CollectorResult:
        try:
            signals = future.result()
        except CollectorError as exc:
            return self._handle_failure(job, exc, self._elapsed(job), exc.partial)
        except Exception as exc:
            return self._handle_failure(job, exc, self._elapsed(job))
        return self._finish(job, signals, self._elapsed(job))

    def _handle_failure(
        self,
        job: _Job,
        exc: BaseException,
        duration: float,
        partial: Sequence[RawSignal] = (),
    ) -> CollectorResult:
        mode = job.opts.error_mode
        if mode is ErrorMode.FAIL:
            raise PipelineError(job.name, exc) from exc
        if mode is ErrorMode.SKIP:
            self.logger.debug("Skipping collector %s after error: %s", job.name, exc)
            return CollectorResult(
                collector=job.name, error=exc, status="skipped", duration=duration
            )
        self.logger.warning("collector %s returned error: %s", job.name, exc)
        result = self._finish(job, partial, duration)
        result.error = exc
        result.status = "timeout" if isinstance(exc, CollectorTimeoutError) else "error"
        return result

    def _finish(
        self, job: _Job, signals: Sequence[RawSignal], duration: float
    ) -> CollectorResult:
        kept: List[RawSignal] = []
        filtered = 0
        for signal in signals:
            issues = validate_signal(signal)
            if issues:
                self.logger.warning(
                    "skipping invalid signal from %s (title=%r): %s",
                    job.name,
                    signal.title,
                    "; ".join(str(issue) for issue in issues),
                )
                filtered += 1
                continue
            if signal.confidence < job.opts.min_confidence:
                filtered += 1
                continue
            if not passes_path_filters(
                signal.file_path, job.opts.include_patterns, job.opts.exclude_patterns
            ):
                filtered += 1
                continue
            kept.append(signal)
        self.logger.debug(
            "Collector %s produced %d signal(s) (%d filtered) in %.2fs",
            job.name,
            len(kept),
            filtered,
            duration,
        )
        return CollectorResult(
            collector=job.name, signals=kept, duration=duration, filtered=filtered
        )

    @staticmethod
    def _elapsed(job: _Job) -> float:
        return time.monotonic() - job.started


__all__ = ["Pipeline"]
