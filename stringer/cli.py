"""CLI entrypoints for stringer commands."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .collectors import discover_collectors
from .errors import ConfigError, PipelineError, StateError
from .logging import configure_logging
from .models import CollectorResult, RawSignal
from .orchestrator import ScanOrchestrator, ScanOutcome
from .render import SummaryRenderer

EXIT_OK = 0
EXIT_INVALID_ARGS = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_TOTAL_FAILURE = 3

_FAILED_STATUSES = frozenset({"error", "timeout"})

_SCAN_EPILOG = (
    "Collector timeouts stop waiting for a collector and discard its output. "
    "A collector that ignores cancellation keeps its worker thread busy, so the "
    "process may only exit once that collector returns."
)


def _add_verbosity_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only log warnings and errors.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stringer",
        description="Mine a repository for actionable signals and track them across scans.",
    )
    _add_verbosity_options(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan", help="Run collectors against a repository.", epilog=_SCAN_EPILOG
    )
    _add_verbosity_options(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)
    scan_parser.add_argument(
        "--collectors",
        "-c",
        default="",
        help="Comma-separated collector names (defaults to every enabled collector).",
    )
    scan_parser.add_argument(
        "--delta",
        action="store_true",
        help="Only output signals not seen in the previous scan.",
    )
    scan_parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not update the persisted scan state or history.",
    )

    trends_parser = subparsers.add_parser("trends", help="Show signal count trends.")
    _add_verbosity_options(trends_parser, suppress_default=True)
    _add_path_argument(trends_parser)
    trends_parser.add_argument(
        "--window", type=int, default=None, help="Number of recent scans to compare."
    )
    trends_parser.add_argument("--workspace", default=None, help="Workspace scope to read.")
    trends_parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table.")

    collectors_parser = subparsers.add_parser("collectors", help="List available collectors.")
    _add_verbosity_options(collectors_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stringer commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file
    )

    if args.command == "scan":
        names = _collector_names(args.collectors)
        orchestrator = ScanOrchestrator()
        try:
            outcome = orchestrator.run_scan(
                args.path,
                collectors=names or None,
                delta=bool(args.delta),
                save_state=not args.no_save,
                record_history=not args.no_save,
            )
        except (ConfigError, FileNotFoundError) as exc:
            parser.exit(EXIT_INVALID_ARGS, f"stringer: {exc}\n")
        except PipelineError as exc:
            parser.exit(EXIT_TOTAL_FAILURE, f"stringer: {exc}\n")
        except StateError as exc:
            parser.exit(EXIT_TOTAL_FAILURE, f"stringer: failed to save delta state ({exc})\n")
        if outcome.diff_summary:
            sys.stderr.write(outcome.diff_summary)
        json.dump(_outcome_payload(outcome), sys.stdout, indent=2)
        sys.stdout.write("\n")
        exit_code = compute_exit_code(outcome.result.results)
        if exit_code != EXIT_OK:
            sys.exit(exit_code)
    elif args.command == "trends":
        try:
            trends = ScanOrchestrator().load_trends(
                args.path, workspace=args.workspace, window_size=args.window
            )
        except StateError as exc:
            parser.exit(EXIT_TOTAL_FAILURE, f"stringer: {exc}\n")
        if trends is None:
            print("Not enough scan history yet (need at least 2 scans).")
        elif args.json:
            print(json.dumps(trends.to_dict(), indent=2))
        else:
            sys.stdout.write(SummaryRenderer().format_trends(trends))
    elif args.command == "collectors":
        for name in discover_collectors().names():
            print(name)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(EXIT_INVALID_ARGS, "Unknown command\n")


def _outcome_payload(outcome: ScanOutcome) -> Dict[str, Any]:
    return {
        "delta": outcome.delta,
        "signals": [_signal_payload(signal) for signal in outcome.signals],
        "resolved": [_signal_payload(signal) for signal in outcome.resolved],
        "collectors": [
            {
                "name": result.collector,
                "status": result.status,
                "signals": len(result.signals),
                "filtered": result.filtered,
                "duration": round(result.duration, 3),
                "error": _error_text(result),
            }
            for result in outcome.result.results
        ],
        "trends": outcome.trends.to_dict() if outcome.trends is not None else None,
    }


def compute_exit_code(results: Sequence[CollectorResult]) -> int:
    """Map collector outcomes to an exit status.

    Skipped collectors are not failures. Every collector failing is a total
    failure; some failing is a partial one.
    """
    failed = sum(1 for result in results if result.status in _FAILED_STATUSES)
    if not failed:
        return EXIT_OK
    if failed == len(results):
        return EXIT_TOTAL_FAILURE
    return EXIT_PARTIAL_FAILURE


def _error_text(result: CollectorResult) -> str | None:
    if result.status == "skipped" or result.error is None:
        return None
    return str(result.error)


def _signal_payload(signal: RawSignal) -> Dict[str, Any]:
    data = asdict(signal)
    data["tags"] = list(signal.tags)
    for key in ("timestamp", "closed_at"):
        value = data.get(key)
        data[key] = value.isoformat() if isinstance(value, datetime) else None
    return data


def _collector_names(raw: str) -> List[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


if __name__ == "__main__":
    main(sys.argv[1:])
