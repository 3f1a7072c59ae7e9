"""Cache layer: async memoization and on-disk response caching."""

__version__ = "0.1.0"
