"""Tests for stringer.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from stringer.logging import configure_logging, get_logger


def test_get_logger_nests_under_stringer() -> None:
    assert get_logger("pipeline").name == "stringer.pipeline"
    assert get_logger().name == "stringer"


def test_quiet_keeps_warnings_only() -> None:
    logger = configure_logging(quiet=True)

    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1


def test_verbose_wins_over_quiet() -> None:
    assert configure_logging(verbose=True, quiet=True).level == logging.DEBUG


def test_reconfiguring_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    configure_logging()
    log_file = tmp_path / "logs" / "stringer.log"
    logger = configure_logging(log_file=log_file)

    get_logger("test").info("scan finished")
    for handler in logger.handlers:
        handler.flush()

    assert len(logger.handlers) == 2
    assert "INFO stringer.test: scan finished" in log_file.read_text(encoding="utf-8")
