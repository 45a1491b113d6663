"""Configuration loading for stringer (.stringer.yaml)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import CollectorOpts, ErrorMode, ScanConfig

FILE_NAME = ".stringer.yaml"
TIMEOUT_ENV = "STRINGER_COLLECTOR_TIMEOUT"

_OUTPUT_FORMATS = ("json", "markdown", "tasks", "beads", "text")

_KNOWN_COLLECTOR_KEYS = {
    "enabled",
    "error_mode",
    "min_confidence",
    "include_patterns",
    "exclude_patterns",
    "timeout",
    "git_depth",
    "git_since",
    "git_root",
    "large_file_threshold",
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


@dataclass
class CollectorConfig:
    """Per-collector settings from .stringer.yaml."""

    enabled: Optional[bool] = None
    error_mode: Optional[str] = None
    min_confidence: Optional[float] = None
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    timeout: Optional[str] = None
    git_depth: Optional[int] = None
    git_since: Optional[str] = None
    git_root: Optional[str] = None
    large_file_threshold: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    # Raw values that were present but could not be converted, keyed by option.
    invalid: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StringerConfig:
    """Represents the settings defined in .stringer.yaml."""

    root: Path
    output_format: Optional[str] = None
    max_issues: int = 0
    exclude_patterns: List[str] = field(default_factory=list)
    collectors: Dict[str, CollectorConfig] = field(default_factory=dict)


def load_config(config_path: Path) -> StringerConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return StringerConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{FILE_NAME} must contain a mapping at the root")

    max_issues = data.get("max_issues", 0)
    if max_issues is None:
        max_issues = 0
    if not isinstance(max_issues, int) or isinstance(max_issues, bool):
        raise ConfigError(f"max_issues: must be an integer, got {max_issues!r}")

    collectors: Dict[str, CollectorConfig] = {}
    raw_collectors = data.get("collectors") or {}
    if not isinstance(raw_collectors, dict):
        raise ConfigError("collectors: must be a mapping of collector name to settings")
    for name, raw in raw_collectors.items():
        collectors[str(name)] = _parse_collector(str(name), raw)

    output_format = data.get("output_format")
    if output_format is not None and _as_str(output_format) is None:
        raise ConfigError(f"output_format: invalid value {output_format!r}")
    exclude_patterns = _as_str_list(data.get("exclude_patterns"))
    if exclude_patterns is None:
        raise ConfigError(f"exclude_patterns: invalid value {data.get('exclude_patterns')!r}")

    return StringerConfig(
        root=root,
        output_format=_as_str(output_format),
        max_issues=max_issues,
        exclude_patterns=exclude_patterns,
        collectors=collectors,
    )


def validate_config(config: StringerConfig, known_collectors: Iterable[str]) -> None:
    """Check every field and raise a single :class:`ConfigError` listing all problems."""
    known = sorted(set(known_collectors))
    errors: List[str] = []

    if config.output_format and config.output_format not in _OUTPUT_FORMATS:
        errors.append(
            f"output_format: unknown format {config.output_format!r} "
            f"(must be one of: {', '.join(_OUTPUT_FORMATS)})"
        )
    if config.max_issues < 0:
        errors.append(f"max_issues: must be non-negative, got {config.max_issues}")

    for name, cc in sorted(config.collectors.items()):
        if name not in known:
            errors.append(
                f"collectors.{name}: unknown collector (valid: {', '.join(known) or 'none'})"
            )
        for key, value in sorted(cc.invalid.items()):
            errors.append(f"collectors.{name}.{key}: invalid value {value!r}")
        if cc.error_mode is not None:
            try:
                ErrorMode.parse(cc.error_mode)
            except ValueError as exc:
                errors.append(f"collectors.{name}.error_mode: {exc}")
        if cc.min_confidence is not None and not 0.0 <= cc.min_confidence <= 1.0:
            errors.append(
                f"collectors.{name}.min_confidence: must be between 0.0 and 1.0, "
                f"got {cc.min_confidence:g}"
            )
        if cc.timeout is not None:
            try:
                parse_duration(cc.timeout)
            except ValueError as exc:
                errors.append(f"collectors.{name}.timeout: {exc}")
        if cc.git_depth is not None and cc.git_depth < 0:
            errors.append(f"collectors.{name}.git_depth: must be non-negative, got {cc.git_depth}")
        if cc.large_file_threshold is not None and cc.large_file_threshold < 0:
            errors.append(
                f"collectors.{name}.large_file_threshold: must be non-negative, "
                f"got {cc.large_file_threshold}"
            )

    if errors:
        raise ConfigError("config validation failed:\n  " + "\n  ".join(errors))


def to_scan_config(
    config: StringerConfig,
    repo_path: Path | str | None = None,
    *,
    collectors: Sequence[str] | None = None,
    known_collectors: Iterable[str] = (),
    environ: Mapping[str, str] | None = None,
) -> ScanConfig:
    """Merge file settings and an optional explicit collector list into a ScanConfig.

    Without an explicit list, every known collector not disabled in the file runs.
    """
    env = os.environ if environ is None else environ
    default_timeout: Optional[float] = None
    if env.get(TIMEOUT_ENV):
        try:
            default_timeout = parse_duration(env[TIMEOUT_ENV])
        except ValueError as exc:
            raise ConfigError(f"{TIMEOUT_ENV}: {exc}") from exc

    if collectors:
        selected = list(collectors)
    else:
        disabled = {name for name, cc in config.collectors.items() if cc.enabled is False}
        selected = [name for name in sorted(set(known_collectors)) if name not in disabled]

    opts: Dict[str, CollectorOpts] = {}
    for name in selected:
        cc = config.collectors.get(name, CollectorConfig())
        opts[name] = _build_opts(name, cc, default_timeout)

    return ScanConfig(
        repo_path=str(Path(repo_path) if repo_path is not None else config.root),
        collectors=selected,
        output_format=config.output_format or "json",
        max_issues=config.max_issues,
        collector_opts=opts,
        exclude_patterns=list(config.exclude_patterns),
    )


def parse_duration(value: object) -> Optional[float]:
    """Parse ``30``, ``"90s"``, ``"2m"``, ``"500ms"`` into seconds; 0 means no limit."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ValueError(f"invalid duration {value!r} (use e.g. 30s, 2m, 1h)")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds < 0:
        raise ValueError(f"duration must be non-negative, got {value!r}")
    return seconds or None


def _build_opts(name: str, cc: CollectorConfig, default_timeout: Optional[float]) -> CollectorOpts:
    if cc.invalid:
        key, value = sorted(cc.invalid.items())[0]
        raise ConfigError(f"collectors.{name}.{key}: invalid value {value!r}")
    try:
        error_mode = ErrorMode.parse(cc.error_mode)
        timeout = parse_duration(cc.timeout) if cc.timeout is not None else default_timeout
    except ValueError as exc:
        raise ConfigError(f"collectors.{name}: {exc}") from exc
    return CollectorOpts(
        min_confidence=cc.min_confidence or 0.0,
        include_patterns=list(cc.include_patterns),
        exclude_patterns=list(cc.exclude_patterns),
        error_mode=error_mode,
        timeout=timeout,
        git_depth=cc.git_depth or 0,
        git_since=cc.git_since,
        git_root=cc.git_root,
        large_file_threshold=cc.large_file_threshold or 0,
        extra=dict(cc.extra),
    )


def _parse_collector(name: str, raw: Any) -> CollectorConfig:
    if raw is None:
        return CollectorConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"collectors.{name}: must be a mapping")
    invalid: Dict[str, Any] = {}

    def option(key: str, convert: Callable[[Any], Any]) -> Any:
        value = raw.get(key)
        if value is None:
            return None
        converted = convert(value)
        if converted is None:
            invalid[key] = value
        return converted

    return CollectorConfig(
        enabled=option("enabled", _as_bool),
        error_mode=option("error_mode", _as_str),
        min_confidence=option("min_confidence", _as_float),
        include_patterns=option("include_patterns", _as_str_list) or [],
        exclude_patterns=option("exclude_patterns", _as_str_list) or [],
        timeout=option("timeout", _as_str),
        git_depth=option("git_depth", _as_int),
        git_since=option("git_since", _as_str),
        git_root=option("git_root", _as_str),
        large_file_threshold=option("large_file_threshold", _as_int),
        extra={key: value for key, value in raw.items() if key not in _KNOWN_COLLECTOR_KEYS},
        invalid=invalid,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / FILE_NAME).resolve()
    if config_path.name != FILE_NAME:
        return (config_path.parent / FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> Optional[List[str]]:
    """Return a list of strings, or ``None`` when ``value`` is not a list of scalars."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, Sequence):
        return None
    if not all(isinstance(item, (str, int, float, bool)) for item in value):
        return None
    return [str(item) for item in value]


__all__ = [
    "CollectorConfig",
    "FILE_NAME",
    "StringerConfig",
    "load_config",
    "parse_duration",
    "to_scan_config",
    "validate_config",
]
