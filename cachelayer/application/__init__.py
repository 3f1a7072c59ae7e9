"""Application services."""

from .memoize import Memoizer

__all__ = ["Memoizer"]
