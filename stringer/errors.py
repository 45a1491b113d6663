"""Exception types raised by stringer components."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import CollectorResult, RawSignal


class StringerError(RuntimeError):
    """Base class for stringer failures."""


class ConfigError(StringerError):
    """Raised when the scan configuration is invalid."""


class CollectorError(StringerError):
    """Raised by (or on behalf of) a collector that could not finish."""

    def __init__(
        self,
        collector: str,
        message: str,
        *,
        partial: Sequence["RawSignal"] = (),
    ) -> None:
        super().__init__(f"collector {collector!r}: {message}")
        self.collector = collector
        self.partial = tuple(partial)


class CollectorTimeoutError(CollectorError):
    """Raised when a collector exceeds its wall-clock budget."""

    def __init__(self, collector: str, timeout: float) -> None:
        super().__init__(collector, f"timed out after {timeout:g}s")
        self.timeout = timeout


class CollectorCancelled(CollectorError):
    """Raised inside a collector once its cancel token fires."""

    def __init__(self, collector: str = "") -> None:
        super().__init__(collector or "<unknown>", "cancelled")


class PipelineError(StringerError):
    """Raised when a fail-mode collector aborts the pipeline."""

    def __init__(
        self,
        collector: str,
        cause: BaseException,
        results: Sequence["CollectorResult"] = (),
    ) -> None:
        super().__init__(f"collector {collector!r} failed: {cause}")
        self.collector = collector
        self.cause = cause
        self.results = list(results)


class StateError(StringerError):
    """Raised when persisted scan state cannot be read or written."""


__all__ = [
    "CollectorCancelled",
    "CollectorError",
    "CollectorTimeoutError",
    "ConfigError",
    "PipelineError",
    "StateError",
    "StringerError",
]
