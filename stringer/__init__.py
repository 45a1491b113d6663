"""Signal mining and scan-over-scan tracking for source repositories."""

from .collectors import CollectorRegistry, discover_collectors
from .collectors.base import CancelToken, Collector
from .diff import DiffResult, MovedSignal, compute_diff
from .errors import (
    CollectorError,
    CollectorTimeoutError,
    ConfigError,
    PipelineError,
    StateError,
    StringerError,
)
from .models import (
    CollectorOpts,
    CollectorResult,
    ErrorMode,
    HistoryEntry,
    RawSignal,
    ScanConfig,
    ScanHistory,
    ScanResult,
    ScanState,
    SignalMeta,
)
from .pipeline import Pipeline
from .signals import fingerprint
from .trends import Direction, TrendLine, TrendResult, compute_trends

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "Collector",
    "CollectorError",
    "CollectorOpts",
    "CollectorRegistry",
    "CollectorResult",
    "CollectorTimeoutError",
    "ConfigError",
    "DiffResult",
    "Direction",
    "ErrorMode",
    "HistoryEntry",
    "MovedSignal",
    "Pipeline",
    "PipelineError",
    "RawSignal",
    "ScanConfig",
    "ScanHistory",
    "ScanResult",
    "ScanState",
    "SignalMeta",
    "StateError",
    "StringerError",
    "TrendLine",
    "TrendResult",
    "compute_diff",
    "compute_trends",
    "discover_collectors",
    "fingerprint",
]
