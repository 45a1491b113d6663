"""Collector registry and plugin discovery."""

from __future__ import annotations

from importlib import metadata
from typing import Dict, Iterable, List, Optional, Sequence

from ..errors import ConfigError
from ..logging import get_logger
from .base import CancelToken, Collector

_ENTRY_POINT_GROUP = "stringer.collectors"

logger = get_logger("collectors")


class CollectorRegistry:
    """Name-indexed set of collectors available to a scan."""

    def __init__(self, collectors: Iterable[Collector] = ()) -> None:
        self._collectors: Dict[str, Collector] = {}
        for collector in collectors:
            self.register(collector)

    def register(self, collector: Collector) -> None:
        if not isinstance(collector, Collector):
            raise TypeError(f"{collector!r} is not a Collector instance")
        name = collector.name
        if not name:
            raise ValueError(f"Collector {collector.__class__.__name__} has no name")
        if name in self._collectors:
            raise ValueError(f"Collector already registered: {name}")
        self._collectors[name] = collector

    def get(self, name: str) -> Optional[Collector]:
        return self._collectors.get(name)

    def names(self) -> List[str]:
        return sorted(self._collectors)

    def resolve(self, names: Sequence[str] | None = None) -> List[Collector]:
        """Return collectors for ``names`` in the given order.

        An empty selection means every registered collector, sorted by name.
        Unknown names raise :class:`ConfigError` listing the valid choices.
        """
        if not names:
            return [self._collectors[name] for name in self.names()]
        unknown = [name for name in names if name not in self._collectors]
        if unknown:
            valid = ", ".join(self.names()) or "(none registered)"
            raise ConfigError(
                f"Unknown collector(s): {', '.join(unknown)}. Valid collectors: {valid}"
            )
        resolved: List[Collector] = []
        seen: set[str] = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            resolved.append(self._collectors[name])
        return resolved

    def __contains__(self, name: object) -> bool:
        return name in self._collectors

    def __len__(self) -> int:
        return len(self._collectors)


def discover_collectors(extra: Iterable[Collector] = ()) -> CollectorRegistry:
    """Build a registry from ``extra`` plus installed entry-point plugins."""
    registry = CollectorRegistry(extra)
    for entry in _iter_entry_points():
        if entry.name in registry:
            logger.debug("Collector %s already provided; ignoring entry point", entry.name)
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            raise ConfigError(f"Failed to load collector entry point '{entry.name}': {exc}") from exc
        collector = _coerce_collector(loaded)
        if not collector.name:
            collector.name = entry.name
        registry.register(collector)
    return registry


def _coerce_collector(obj: object) -> Collector:
    if isinstance(obj, Collector):
        return obj
    if isinstance(obj, type) and issubclass(obj, Collector):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Collector):
            return instance
    raise TypeError("Collector entry point must be a Collector subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CancelToken",
    "Collector",
    "CollectorRegistry",
    "discover_collectors",
]
