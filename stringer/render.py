"""Human-readable summaries of diffs and trends."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader

from .diff import DiffResult, annotate_removed_signals, format_location
from .trends import TrendLine, TrendResult

_TEMPLATES_DIR = Path(__file__).with_name("templates")


@dataclass(frozen=True)
class _TrendRow:
    name: str
    line: TrendLine


class SummaryRenderer:
    """Renders delta and trend summaries from the bundled Jinja templates."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories = [str(templates_dir)] if templates_dir else []
        directories.append(str(_TEMPLATES_DIR))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters["location"] = format_location
        self._env.filters["signed"] = _signed

    def format_diff(self, diff: DiffResult, repo_path: str | Path) -> str:
        removed = annotate_removed_signals(repo_path, diff.removed)
        template = self._env.get_template("diff.j2")
        return template.render(diff=diff, removed=removed).rstrip("\n") + "\n"

    def format_trends(self, trends: TrendResult) -> str:
        rows: List[_TrendRow] = [_TrendRow("Total", trends.total_trend)]
        rows.extend(_TrendRow(name, line) for name, line in sorted(trends.collector_trends.items()))
        rows.extend(_TrendRow(name, line) for name, line in sorted(trends.kind_trends.items()))
        width = max(len("Metric"), *(len(row.name) for row in rows))
        template = self._env.get_template("trends.j2")
        return template.render(trends=trends, rows=rows, width=width).rstrip("\n") + "\n"


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


__all__ = ["SummaryRenderer"]
