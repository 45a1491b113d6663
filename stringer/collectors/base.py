"""Base classes for collector plugins."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..errors import CollectorCancelled
from ..models import CollectorOpts, RawSignal

_WAIT_SLICE = 0.05


class CancelToken:
    """Cooperative cancellation flag shared between the pipeline and collectors.

    Cancelling a token cancels every token derived from it via :meth:`child`;
    cancelling a child leaves the parent and siblings untouched.
    """

    def __init__(self, parent: Optional["CancelToken"] = None, *, name: str = "") -> None:
        self._event = threading.Event()
        self._parent = parent
        self.name = name

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        self._event.set()

    def child(self, name: str = "") -> "CancelToken":
        return CancelToken(self, name=name or self.name)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CollectorCancelled(self.name)

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early once cancelled."""
        deadline = time.monotonic() + timeout
        while not self.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self._event.wait(min(remaining, _WAIT_SLICE))
        return True


class Collector(ABC):
    """Contract for collectors that emit signals from a repository."""

    name: str = ""

    @abstractmethod
    def collect(
        self, repo_path: str, opts: CollectorOpts, token: CancelToken
    ) -> Iterable[RawSignal]:
        """Return the signals found in ``repo_path``.

        Implementations only read from the repository. Long-running work should
        check ``token`` and stop once it is cancelled. Raising
        :class:`~stringer.errors.CollectorError` with ``partial`` signals lets
        warn-mode scans keep what was found before the failure.
        """
