"""Logging configuration for the cache layer service.

Cache hits and misses are logged at DEBUG under the ``cachelayer`` namespace;
retries at WARNING; exhausted retries and store failures at ERROR.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", cache_level: str | None = None) -> None:
    """Configure logging for the application.

    Args:
        level: Root logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        cache_level: Level for ``cachelayer.*`` loggers only, e.g. "DEBUG" to
            trace hits and misses without debug noise from other libraries
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if cache_level is not None:
        logging.getLogger("cachelayer").setLevel(
            getattr(logging, cache_level.upper(), numeric_level)
        )

    # Per-request access lines duplicate the cache logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiofiles").setLevel(logging.WARNING)
