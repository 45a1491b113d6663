"""Git HEAD lookup used to stamp persisted scan state."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable


class HeadResolver:
    """Returns the commit hash checked out in a working tree, or ``""``."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def __call__(self, repo_path: str | Path) -> str:
        return self.resolve(repo_path)

    def resolve(self, repo_path: str | Path) -> str:
        repo = Path(repo_path)
        if not repo.is_dir():
            return ""
        try:
            output = self._runner(["git", "rev-parse", "--verify", "HEAD"], cwd=repo)
        except (OSError, subprocess.CalledProcessError):
            # Not a git tree, no commits yet, or git is not installed.
            return ""
        return output.strip()

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


__all__ = ["HeadResolver"]
