"""Rendering of delta and trend summaries."""

from __future__ import annotations

from pathlib import Path

from stringer.diff import DiffResult, MovedSignal
from stringer.models import SignalMeta
from stringer.render import SummaryRenderer
from stringer.trends import Direction, TrendLine, TrendResult
from tests._fixtures.repo_builder import RepoBuilder


def _meta(title: str, path: str, line: int = 0, source: str = "todos") -> SignalMeta:
    return SignalMeta(hash=title[:8], source=source, kind="todo", file_path=path, title=title, line=line)


def test_format_diff_without_changes(tmp_path: Path) -> None:
    output = SummaryRenderer().format_diff(DiffResult(), tmp_path)

    assert output == "Delta scan summary: no changes\n"


def test_format_diff_lists_each_section(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"kept.go": "package main\n"})
    diff = DiffResult(
        added=[_meta("new thing", "src/app.go", 4)],
        removed=[_meta("old thing", "kept.go", 2), _meta("gone thing", "deleted.go")],
        moved=[
            MovedSignal(
                previous=_meta("refactor parser", "parser/old.go", 15),
                current=_meta("refactor parser", "parser/new.go", 22),
            )
        ],
    )

    output = SummaryRenderer().format_diff(diff, repo_builder.path())

    assert output.splitlines() == [
        "Delta scan summary:",
        "  + 1 new signal(s)",
        "  - 2 resolved signal(s)",
        "  ~ 1 moved signal(s)",
        "",
        "New signals:",
        "  + [todos] new thing (src/app.go:4)",
        "",
        "Resolved signals:",
        "  - [todos] old thing (kept.go:2)",
        "  - [todos] gone thing (deleted.go) [file deleted]",
        "",
        "Moved signals:",
        "  ~ [todos] refactor parser",
        "    from: parser/old.go:15",
        "    to:   parser/new.go:22",
    ]
    assert output.endswith("\n")


def test_format_trends_table() -> None:
    trends = TrendResult(
        total_trend=TrendLine(current=120, previous=100, delta=20, direction=Direction.DEGRADING),
        collector_trends={
            "todos": TrendLine(current=80, previous=90, delta=-10, direction=Direction.IMPROVING)
        },
        kind_trends={"todo": TrendLine(current=5, previous=5, delta=0, direction=Direction.STABLE)},
        window_size=5,
        data_points=3,
    )

    output = SummaryRenderer().format_trends(trends)
    lines = output.splitlines()

    assert lines[0] == "Health Trends"
    assert "last 3 of 5 data points" in output
    assert lines[4].split() == ["Metric", "Current", "Previous", "Delta", "Direction"]
    assert lines[5].split() == ["Total", "120", "100", "+20", "degrading"]
    assert lines[6].split() == ["todos", "80", "90", "-10", "improving"]
    assert lines[7].split() == ["todo", "5", "5", "0", "stable"]


def test_custom_templates_override_bundled_ones(tmp_path: Path) -> None:
    (tmp_path / "diff.j2").write_text("changes: {{ diff.added|length }}\n", encoding="utf-8")

    output = SummaryRenderer(templates_dir=tmp_path).format_diff(
        DiffResult(added=[_meta("x", "a.go")]), tmp_path
    )

    assert output == "changes: 1\n"
