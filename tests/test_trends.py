"""Trend classification over scan history."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Dict

import pytest

from stringer.models import HistoryEntry, ScanHistory
from stringer.trends import Direction, classify_direction, compute_trends

_START = datetime(2025, 1, 1, tzinfo=UTC)


def _history(*entries: tuple[int, Dict[str, int], Dict[str, int]]) -> ScanHistory:
    return ScanHistory(
        version="1",
        entries=[
            HistoryEntry(
                timestamp=_START + timedelta(days=index),
                git_head="",
                total_signals=total,
                collector_counts=collectors,
                kind_counts=kinds,
            )
            for index, (total, collectors, kinds) in enumerate(entries)
        ],
    )


@pytest.mark.parametrize(
    "old, new, expected",
    [
        (100, 110, Direction.STABLE),
        (100, 111, Direction.DEGRADING),
        (100, 90, Direction.STABLE),
        (100, 89, Direction.IMPROVING),
        (0, 0, Direction.STABLE),
        (0, 5, Direction.DEGRADING),
        (5, 0, Direction.IMPROVING),
        (10, 11, Direction.STABLE),
    ],
)
def test_classify_direction_deadband(old: int, new: int, expected: Direction) -> None:
    assert classify_direction(old, new) is expected


def test_compute_trends_needs_two_entries() -> None:
    assert compute_trends(None) is None
    assert compute_trends(_history((10, {}, {}))) is None


def test_compute_trends_uses_window_endpoints() -> None:
    history = _history(
        (500, {}, {}),
        (100, {}, {}),
        (300, {}, {}),
        (120, {}, {}),
    )

    trends = compute_trends(history, window_size=3)

    assert trends is not None
    assert trends.data_points == 3
    assert trends.window_size == 3
    assert trends.total_trend.previous == 100
    assert trends.total_trend.current == 120
    assert trends.total_trend.delta == 20
    assert trends.total_trend.direction is Direction.DEGRADING


def test_compute_trends_window_larger_than_history() -> None:
    trends = compute_trends(_history((10, {}, {}), (5, {}, {})), window_size=5)

    assert trends is not None
    assert trends.data_points == 2
    assert trends.total_trend.direction is Direction.IMPROVING


def test_compute_trends_covers_union_of_keys() -> None:
    history = _history(
        (3, {"todos": 3}, {"todo": 3}),
        (4, {"gitlog": 4}, {"todo": 3, "churn": 1}),
    )

    trends = compute_trends(history)

    assert trends is not None
    assert list(trends.collector_trends) == ["gitlog", "todos"]
    assert trends.collector_trends["todos"].current == 0
    assert trends.collector_trends["todos"].direction is Direction.IMPROVING
    assert trends.collector_trends["gitlog"].previous == 0
    assert trends.collector_trends["gitlog"].direction is Direction.DEGRADING
    assert trends.kind_trends["todo"].direction is Direction.STABLE


def test_compute_trends_clamps_tiny_window() -> None:
    trends = compute_trends(_history((1, {}, {}), (2, {}, {}), (3, {}, {})), window_size=0)

    assert trends is not None
    assert trends.window_size == 2
    assert trends.total_trend.previous == 2


def test_trend_result_to_dict() -> None:
    trends = compute_trends(_history((10, {"todos": 10}, {}), (20, {"todos": 20}, {})))

    assert trends is not None
    data = trends.to_dict()
    assert data["total_trend"] == {
        "current": 20,
        "previous": 10,
        "delta": 10,
        "direction": "degrading",
    }
    assert data["collector_trends"]["todos"]["direction"] == "degrading"
    assert data["data_points"] == 2
