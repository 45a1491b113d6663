"""Git helpers."""

from .head import HeadResolver

__all__ = ["HeadResolver"]
