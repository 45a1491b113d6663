"""Persistent stores for scan state and history."""

from .history import HistoryStore, append_entry, build_history_entry
from .scan_state import StateStore, collectors_match, filter_new

__all__ = [
    "HistoryStore",
    "StateStore",
    "append_entry",
    "build_history_entry",
    "collectors_match",
    "filter_new",
]
