"""Concurrent collector pipeline behaviour."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from stringer.collectors import CollectorRegistry
from stringer.collectors.base import CancelToken
from stringer.errors import CollectorTimeoutError, ConfigError, PipelineError
from stringer.models import CollectorOpts, ErrorMode, ScanConfig
from stringer.pipeline import Pipeline
from tests._fixtures.collectors import (
    BlockingCollector,
    FailingCollector,
    StaticCollector,
    make_signal,
)


def _config(tmp_path: Path, **opts: CollectorOpts) -> ScanConfig:
    return ScanConfig(repo_path=str(tmp_path), collector_opts=dict(opts))


def test_pipeline_merges_in_collector_order(tmp_path: Path) -> None:
    first = StaticCollector("todos", [make_signal("todos", "one"), make_signal("todos", "two")])
    second = StaticCollector("gitlog", [make_signal("gitlog", "three")])

    result = Pipeline(_config(tmp_path), [first, second]).run()

    assert [s.title for s in result.signals] == ["one", "two", "three"]
    assert result.collector_names() == ["todos", "gitlog"]
    assert all(r.status == "ok" and r.error is None for r in result.results)


def test_pipeline_with_no_collectors_returns_empty_result(tmp_path: Path) -> None:
    result = Pipeline(_config(tmp_path), []).run()

    assert result.signals == []
    assert result.results == []


def test_warn_mode_failure_keeps_siblings(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    ok = StaticCollector("todos", [make_signal("todos", "kept")])
    broken = FailingCollector("gitlog")

    with caplog.at_level("WARNING", logger="stringer"):
        result = Pipeline(_config(tmp_path), [ok, broken]).run()

    assert "collector gitlog returned error" in caplog.text
    assert [s.title for s in result.signals] == ["kept"]
    failed = result.results[1]
    assert failed.collector == "gitlog"
    assert failed.status == "error"
    assert isinstance(failed.error, RuntimeError)


def test_warn_mode_keeps_partial_output(tmp_path: Path) -> None:
    broken = FailingCollector("gitlog", partial=[make_signal("gitlog", "half done")])

    result = Pipeline(_config(tmp_path), [broken]).run()

    assert [s.title for s in result.signals] == ["half done"]
    assert result.results[0].error is not None


def test_fail_mode_aborts_pipeline(tmp_path: Path) -> None:
    slow = BlockingCollector("slow")
    broken = FailingCollector("gitlog")
    config = _config(tmp_path, gitlog=CollectorOpts(error_mode=ErrorMode.FAIL))

    with pytest.raises(PipelineError) as excinfo:
        Pipeline(config, [slow, broken]).run()

    assert excinfo.value.collector == "gitlog"
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert slow.cancelled.wait(2.0)


def test_string_error_mode_is_honoured(tmp_path: Path) -> None:
    opts = CollectorOpts(error_mode="FAIL")  # type: ignore[arg-type]
    assert opts.error_mode is ErrorMode.FAIL

    config = _config(tmp_path, gitlog=opts)
    with pytest.raises(PipelineError):
        Pipeline(config, [FailingCollector("gitlog")]).run()


def test_unknown_error_mode_is_rejected() -> None:
    with pytest.raises(ValueError, match="invalid error mode"):
        CollectorOpts(error_mode="explode")  # type: ignore[arg-type]


def test_skip_mode_drops_output_silently(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    broken = FailingCollector("gitlog", partial=[make_signal("gitlog", "partial")])
    config = _config(tmp_path, gitlog=CollectorOpts(error_mode=ErrorMode.SKIP))

    with caplog.at_level("WARNING", logger="stringer"):
        result = Pipeline(config, [broken]).run()

    assert result.signals == []
    assert result.results[0].status == "skipped"
    assert not caplog.records


def test_timeout_cancels_only_that_collector(tmp_path: Path) -> None:
    slow = BlockingCollector("slow")
    fast = StaticCollector("fast", [make_signal("fast", "quick")])
    config = _config(tmp_path, slow=CollectorOpts(timeout=0.1))

    started = time.monotonic()
    result = Pipeline(config, [slow, fast]).run()

    assert time.monotonic() - started < 2.0
    assert [s.title for s in result.signals] == ["quick"]
    timed_out = result.results[0]
    assert timed_out.status == "timeout"
    assert isinstance(timed_out.error, CollectorTimeoutError)
    assert slow.cancelled.wait(2.0)


def test_timeout_in_fail_mode_raises(tmp_path: Path) -> None:
    slow = BlockingCollector("slow")
    config = _config(tmp_path, slow=CollectorOpts(timeout=0.1, error_mode=ErrorMode.FAIL))

    with pytest.raises(PipelineError) as excinfo:
        Pipeline(config, [slow]).run()

    assert isinstance(excinfo.value.cause, CollectorTimeoutError)


def test_external_cancellation_abandons_running_collectors(tmp_path: Path) -> None:
    slow = BlockingCollector("slow")
    token = CancelToken()

    def _cancel_when_started() -> None:
        slow.started.wait(2.0)
        token.cancel()

    canceller = threading.Thread(target=_cancel_when_started)
    canceller.start()
    result = Pipeline(_config(tmp_path), [slow]).run(token)
    canceller.join()

    assert result.signals == []
    assert result.results[0].status == "error"


def test_post_filters_apply_per_collector(tmp_path: Path) -> None:
    signals = [
        make_signal("todos", "low", confidence=0.2),
        make_signal("todos", "vendored", file_path="vendor/x.go"),
        make_signal("todos", "keep", file_path="src/app.go"),
        make_signal("todos", "", file_path="src/bad.go"),
    ]
    collector = StaticCollector("todos", signals)
    config = _config(
        tmp_path,
        todos=CollectorOpts(min_confidence=0.5, exclude_patterns=["vendor/**"]),
    )

    result = Pipeline(config, [collector]).run()

    assert [s.title for s in result.signals] == ["keep"]
    assert result.results[0].filtered == 3


def test_global_excludes_reach_every_collector(tmp_path: Path) -> None:
    collector = StaticCollector(
        "todos",
        [make_signal("todos", "gen", file_path="gen/x.go"), make_signal("todos", "ok")],
    )
    config = ScanConfig(repo_path=str(tmp_path), exclude_patterns=["gen/**"])

    result = Pipeline(config, [collector]).run()

    assert [s.title for s in result.signals] == ["ok"]
    assert collector.calls[0].exclude_patterns == ["gen/**"]


def test_duplicates_are_merged_and_cap_applied(tmp_path: Path) -> None:
    first = StaticCollector("todos", [make_signal("todos", "a"), make_signal("todos", "b")])
    second = StaticCollector("todos2", [make_signal("todos", "a", confidence=0.95)])
    config = ScanConfig(repo_path=str(tmp_path), max_issues=1)

    result = Pipeline(config, [first, second]).run()

    assert [s.title for s in result.signals] == ["a"]
    assert result.signals[0].confidence == 0.95


def test_from_registry_rejects_unknown_names_before_running(tmp_path: Path) -> None:
    collector = StaticCollector("todos")
    registry = CollectorRegistry([collector])
    config = ScanConfig(repo_path=str(tmp_path), collectors=["todos", "missing"])

    with pytest.raises(ConfigError):
        Pipeline.from_registry(config, registry)

    assert collector.calls == []
