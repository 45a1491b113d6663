"""Signal identity, validation, and path-matching helpers."""

from __future__ import annotations

import hashlib
import posixpath
from dataclasses import dataclass, replace
from fnmatch import fnmatch
from typing import Dict, Iterable, List, Sequence

from .models import RawSignal

_FINGERPRINT_BYTES = 4


@dataclass(frozen=True)
class ValidationIssue:
    """A single reason why a signal was rejected."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def normalize_path(path: str) -> str:
    """Return a forward-slash, relative-looking form of ``path``.

    Empty paths stay empty so repository-level signals keep a stable identity.
    """
    if not path:
        return ""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized == ".":
        return ""
    return normalized


def fingerprint(signal: RawSignal) -> str:
    """Content hash identifying the same logical finding across scans.

    Only source, kind, normalized path, line, and title participate; confidence,
    description, and timestamps may drift without changing identity.
    """
    digest = hashlib.sha256()
    key = "\x00".join(
        (
            signal.source,
            signal.kind,
            normalize_path(signal.file_path),
            str(signal.line),
            signal.title,
        )
    )
    digest.update(key.encode("utf-8"))
    return digest.hexdigest()[: _FINGERPRINT_BYTES * 2]


def validate_signal(signal: RawSignal) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if not signal.title.strip():
        issues.append(ValidationIssue("title", "must not be empty"))
    if not signal.source.strip():
        issues.append(ValidationIssue("source", "must not be empty"))
    if signal.file_path and _is_absolute(signal.file_path):
        issues.append(
            ValidationIssue("file_path", "must be a relative path, got absolute path")
        )
    if not 0.0 <= signal.confidence <= 1.0:
        issues.append(
            ValidationIssue(
                "confidence", f"must be between 0.0 and 1.0, got {signal.confidence}"
            )
        )
    return issues


def deduplicate_signals(signals: Sequence[RawSignal]) -> List[RawSignal]:
    """Drop repeated fingerprints, keeping the first and the highest confidence."""
    index_by_hash: Dict[str, int] = {}
    result: List[RawSignal] = []
    for signal in signals:
        key = fingerprint(signal)
        existing = index_by_hash.get(key)
        if existing is None:
            index_by_hash[key] = len(result)
            result.append(signal)
            continue
        kept = result[existing]
        if signal.confidence > kept.confidence:
            result[existing] = replace(kept, confidence=signal.confidence)
    return result


def passes_path_filters(
    path: str, include: Iterable[str], exclude: Iterable[str]
) -> bool:
    """Return True when ``path`` survives the include/exclude globs.

    Signals without a path are never excluded by path filters.
    """
    if not path:
        return True
    normalized = normalize_path(path)
    include = list(include)
    if include and not any(path_matches(normalized, pattern) for pattern in include):
        return False
    return not any(path_matches(normalized, pattern) for pattern in exclude)


def path_matches(path: str, pattern: str) -> bool:
    normalized = path.replace("\\", "/")
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return normalized == prefix or normalized.startswith(prefix + "/")
    if pattern.endswith("/"):
        return normalized.startswith(pattern) or f"/{pattern}" in f"/{normalized}"
    if pattern.startswith("**/"):
        suffix = pattern[3:]
        return fnmatch(normalized, suffix) or fnmatch(normalized, pattern) or any(
            fnmatch("/".join(normalized.split("/")[i:]), suffix)
            for i in range(1, normalized.count("/") + 1)
        )
    if "/" in pattern or any(ch in pattern for ch in "*?["):
        return fnmatch(normalized, pattern)
    if normalized == pattern:
        return True
    return normalized.endswith(f"/{pattern}")


def _is_absolute(path: str) -> bool:
    normalized = path.replace("\\", "/")
    if normalized.startswith("/"):
        return True
    # Windows drive letters, e.g. C:/src
    return len(normalized) > 2 and normalized[1] == ":" and normalized[2] == "/"


__all__ = [
    "ValidationIssue",
    "deduplicate_signals",
    "fingerprint",
    "normalize_path",
    "passes_path_filters",
    "path_matches",
    "validate_signal",
]
