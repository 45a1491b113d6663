from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from tests._fixtures.git import FixedHead
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture(autouse=True)
def _reset_stringer_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog keeps seeing stringer records."""
    yield
    logger = logging.getLogger("stringer")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def fixed_head() -> FixedHead:
    return FixedHead("abc123")
