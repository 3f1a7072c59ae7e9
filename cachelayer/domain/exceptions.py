"""Exception hierarchy for the cache layer.

Configuration problems are fatal and never retried. Store and content errors
carry enough context to be logged or turned into an error response.
"""


class CacheLayerError(Exception):
    """Base exception for all cache layer errors."""

    pass


class ConfigurationError(CacheLayerError):
    """Raised when a caller supplies settings that can never work.

    Examples: missing id, a worker that is not invokable or is already running,
    a retry delay that is not a finite number.
    """

    pass


class UnknownStoreError(ConfigurationError):
    """Raised when a store id is not registered."""

    def __init__(self, store_id: str, available: list[str]) -> None:
        super().__init__(f"Unknown cache store '{store_id}'")
        self.store_id = store_id
        self.available = available

    def __str__(self) -> str:
        return f"{super().__str__()} (available={', '.join(self.available) or 'none'})"


class StoreError(CacheLayerError):
    """Raised when a cache store fails to read or write an entry."""

    pass


class UnsupportedContentType(CacheLayerError):
    """Raised when cache_send is given content it cannot send or persist."""

    def __init__(self, content_type: str) -> None:
        super().__init__(f"Unsupported content type for cache_send: {content_type}")
        self.content_type = content_type
