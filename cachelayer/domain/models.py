"""
Domain models for memoization and file response caching.

``MemoizeSettings`` is the per-call configuration of a memoized computation.
Callers may pass a bare key instead; ``MemoizeSettings.coerce`` resolves either
form once, at the call boundary.

Hooks never signal "override" through a defined/undefined return value. They
return an explicit ``Override`` to supersede the normal flow, ``None`` to leave
it alone, or raise to abort.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Generic, TypeVar

from cachelayer.domain.exceptions import ConfigurationError
from cachelayer.shared.durations import parse_duration

T = TypeVar("T")


class Sentinel:
    """Unique marker object that never equals a stored value."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name}>"

    def __reduce__(self) -> str:
        # Pickling returns the module-level singleton
        return self.name


UNSET = Sentinel("UNSET")
INVALID_STORE = Sentinel("INVALID_STORE")


@dataclass(frozen=True)
class Override(Generic[T]):
    """Hook result that replaces the value the normal flow would produce."""

    value: T


OnCachedHook = Callable[["MemoizeSettings", Any], Override[Any] | None | Awaitable[Override[Any] | None]]
OnRetryHook = Callable[[Exception, int], Override[Any] | None | Awaitable[Override[Any] | None]]
RetryDelay = float | Callable[[int, "MemoizeSettings"], float]


@dataclass(frozen=True)
class MemoizeSettings:
    """
    Settings for one memoized computation.

    Attributes:
        id: Cache key, unique across the store
        enabled: When False the worker runs directly and the store is untouched
        expiry: Entry lifetime (seconds, timedelta or string such as "1h");
            None uses the memoizer default
        reject_as: Value cached and returned when the worker fails; ``UNSET``
            disables failure caching (None is a legitimate value)
        retry: Number of retries after the first failed attempt
        retry_delay: Seconds between retries, or ``f(attempt, settings)``
        on_cached: ``f(settings, value)`` run on a hit; may return an Override
        on_retry: ``f(error, attempt)`` run before each retry; may return an
            Override to resolve immediately or raise to abort
        invalid_store: Sentinel used to probe the store for absence
        tags: Tags stored with the entry for bulk invalidation
        coalesce: Share one in-flight computation between concurrent misses
    """

    id: str
    enabled: bool = True
    expiry: str | int | float | timedelta | None = None
    reject_as: Any = UNSET
    retry: int = 0
    retry_delay: RetryDelay = 0.1
    on_cached: OnCachedHook | None = None
    on_retry: OnRetryHook | None = None
    invalid_store: Any = INVALID_STORE
    tags: tuple[str, ...] = field(default_factory=tuple)
    coalesce: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ConfigurationError("Memoize settings require a non-empty string id")
        if isinstance(self.retry, bool) or not isinstance(self.retry, int) or self.retry < 0:
            raise ConfigurationError(f"retry must be a non-negative integer, got {self.retry!r}")
        if isinstance(self.tags, str):
            object.__setattr__(self, "tags", (self.tags,))
        else:
            object.__setattr__(self, "tags", tuple(self.tags))

    @classmethod
    def coerce(cls, value: "MemoizeSettings | Mapping[str, Any] | str") -> "MemoizeSettings":
        """Resolve a bare id, a mapping or a settings object into settings."""
        if isinstance(value, MemoizeSettings):
            return value
        if isinstance(value, str):
            return cls(id=value)
        if isinstance(value, Mapping):
            if not value.get("id"):
                raise ConfigurationError("Memoize settings require an id")
            try:
                return cls(**value)
            except TypeError as e:
                raise ConfigurationError(f"Invalid memoize settings: {e}") from e
        raise ConfigurationError(
            f"Memoize settings must be an id string or settings, got {type(value).__name__}"
        )

    @property
    def rejects(self) -> bool:
        """True if failures are cached as ``reject_as``."""
        return self.reject_as is not UNSET

    def ttl_seconds(self, default: str | int | float | timedelta) -> float:
        """Entry lifetime in seconds, falling back to ``default``."""
        return parse_duration(self.expiry if self.expiry is not None else default)

    def with_overrides(self, **changes: Any) -> "MemoizeSettings":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class CacheSendOptions:
    """
    Options for the response capability attached by the file cache middleware.

    Attributes:
        write_through: Persist content to the staged cache path when one is set
        media_type: Response media type (guessed from the path for files)
        status_code: Status code for direct responses
        headers: Extra response headers
    """

    write_through: bool = True
    media_type: str | None = None
    status_code: int = 200
    headers: Mapping[str, str] | None = None
