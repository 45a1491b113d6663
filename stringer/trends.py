"""Directional trends over the scan history."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional

from .models import ScanHistory

DEFAULT_WINDOW_SIZE = 5

# Relative change at or below 10% counts as stable.
_DEADBAND_NUMERATOR = 1
_DEADBAND_DENOMINATOR = 10


class Direction(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


@dataclass(frozen=True)
class TrendLine:
    """Change of one metric between the oldest and newest entry in the window."""

    current: int
    previous: int
    delta: int
    direction: Direction


@dataclass
class TrendResult:
    total_trend: TrendLine
    collector_trends: Dict[str, TrendLine] = field(default_factory=dict)
    kind_trends: Dict[str, TrendLine] = field(default_factory=dict)
    window_size: int = DEFAULT_WINDOW_SIZE
    data_points: int = 0

    def to_dict(self) -> Dict[str, object]:
        def _line(line: TrendLine) -> Dict[str, object]:
            data = asdict(line)
            data["direction"] = line.direction.value
            return data

        return {
            "total_trend": _line(self.total_trend),
            "collector_trends": {k: _line(v) for k, v in self.collector_trends.items()},
            "kind_trends": {k: _line(v) for k, v in self.kind_trends.items()},
            "window_size": self.window_size,
            "data_points": self.data_points,
        }


def compute_trends(
    history: Optional[ScanHistory], window_size: int = DEFAULT_WINDOW_SIZE
) -> Optional[TrendResult]:
    """Compare the oldest and newest entries among the last ``window_size``.

    Returns ``None`` until there are at least two entries to compare.
    """
    if history is None or len(history.entries) < 2:
        return None
    # A window needs two endpoints.
    window_size = max(window_size, 2)

    entries = history.entries[-window_size:]
    oldest, newest = entries[0], entries[-1]
    return TrendResult(
        total_trend=compute_trend_line(oldest.total_signals, newest.total_signals),
        collector_trends=_trends_by_key(oldest.collector_counts, newest.collector_counts),
        kind_trends=_trends_by_key(oldest.kind_counts, newest.kind_counts),
        window_size=window_size,
        data_points=len(entries),
    )


def compute_trend_line(old: int, new: int) -> TrendLine:
    return TrendLine(
        current=new,
        previous=old,
        delta=new - old,
        direction=classify_direction(old, new),
    )


def classify_direction(old: int, new: int) -> Direction:
    """Classify ``old -> new`` with a 10% deadband; fewer signals is better.

    The base is the old value, or the new value when the old one is zero.
    """
    if old == 0 and new == 0:
        return Direction.STABLE
    base = old if old != 0 else new
    if abs(new - old) * _DEADBAND_DENOMINATOR <= abs(base) * _DEADBAND_NUMERATOR:
        return Direction.STABLE
    if new < old:
        return Direction.IMPROVING
    return Direction.DEGRADING


def _trends_by_key(old: Mapping[str, int], new: Mapping[str, int]) -> Dict[str, TrendLine]:
    keys = sorted(set(old) | set(new))
    return {key: compute_trend_line(old.get(key, 0), new.get(key, 0)) for key in keys}


__all__ = [
    "DEFAULT_WINDOW_SIZE",
    "Direction",
    "TrendLine",
    "TrendResult",
    "classify_direction",
    "compute_trend_line",
    "compute_trends",
]
