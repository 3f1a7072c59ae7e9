"""
On-disk response cache middleware.

``FileCacheMiddleware`` resolves a cache path for each request. If a file is
already there it is served directly and the endpoint never runs. Otherwise the
path is staged on ``request.state.cache_path`` and the endpoint populates it
through ``request.state.cache_send``:

    @app.get("/reports/{name}")
    async def report(request: Request, name: str):
        return await request.state.cache_send(await render(name))

Register it with ``app.middleware("http")(FileCacheMiddleware(settings))``.
"""

import asyncio
import hashlib
import inspect
import logging
import uuid
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from fastapi import Request
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse

from cachelayer.domain.exceptions import UnsupportedContentType
from cachelayer.domain.models import CacheSendOptions

logger = logging.getLogger(__name__)

PathResolver = Callable[[Request], str | Path | None | Awaitable[str | Path | None]]
EnabledResolver = Callable[[Request], bool | Awaitable[bool]]
CallNext = Callable[[Request], Awaitable[Response]]

BUFFER_TYPES = (str, bytes, bytearray, memoryview)


class _SkipFileCache(Exception):
    """Internal signal: bypass the file cache and run the endpoint."""


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _resolve(value: Any, request: Request) -> Any:
    return await _call(value, request) if callable(value) else value


def _temp_path(path: Path) -> Path:
    # One temp file per writer; concurrent misses on a path must not share it
    return path.with_name(f".{path.name}.{uuid.uuid4().hex}.part")


async def _discard(path: Path) -> None:
    if await aiofiles.os.path.exists(path):
        await aiofiles.os.remove(path)


async def _default_cached_file(request: Request, path: Path) -> Response:
    return FileResponse(path)


@dataclass(frozen=True)
class FileCacheSettings:
    """
    Settings for the file cache middleware.

    Attributes:
        path: Cache file path, or a (sync or async) resolver of the request;
            a resolver returning None bypasses the cache for that request
        enabled: Flag, or a (sync or async) resolver of the request
        on_cached_file: Builds the response for an existing file
            (default: ``FileResponse``)
        on_create_file: Called with (request, path) once a miss has been staged
    """

    path: str | Path | PathResolver
    enabled: bool | EnabledResolver = True
    on_cached_file: Callable[[Request, Path], Response | Awaitable[Response]] = _default_cached_file
    on_create_file: Callable[[Request, Path], Any] | None = None


def path_from_request(root: str | Path, default_name: str = "index") -> PathResolver:
    """
    Build a resolver mapping the request URL to a file under ``root``.

    Every URL path becomes a directory holding one file named ``default_name``:
    ``/reports/2024`` maps to ``<root>/reports/2024/index``. A query string adds
    a short hash suffix to the file name so distinct queries get distinct files.
    Cache files and URL directories therefore never share a name, so ``/a`` and
    ``/a/b`` can both be cached. ``/a`` and ``/a/`` share one file.

    URLs resolve to None, which bypasses the cache, when they escape the root
    or contain a segment named like a cache file (``default_name`` or
    ``default_name.<suffix>``).

    Args:
        root: Directory holding cached responses
        default_name: File name used for every cached URL

    Returns:
        Path resolver for ``FileCacheSettings.path``
    """
    root_path = Path(root).resolve()
    reserved_prefix = f"{default_name}."

    def resolver(request: Request) -> Path | None:
        segments = [part for part in request.url.path.split("/") if part]
        if any(part == default_name or part.startswith(reserved_prefix) for part in segments):
            logger.warning(f"Refusing to cache path shadowing a cache file: {request.url.path}")
            return None

        name = default_name
        if request.url.query:
            digest = hashlib.sha256(request.url.query.encode("utf-8")).hexdigest()[:16]
            name = f"{reserved_prefix}{digest}"

        candidate = root_path.joinpath(*segments, name).resolve()
        if not candidate.is_relative_to(root_path):
            logger.warning(f"Refusing to cache path outside root: {request.url.path}")
            return None
        return candidate

    return resolver


class FileCacheMiddleware:
    """HTTP middleware stage serving cached response files or staging new ones."""

    def __init__(self, settings: FileCacheSettings) -> None:
        self.settings = settings

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        request.state.cache_path = None
        request.state.cache_send = self._make_cache_send(request)

        try:
            enabled, path = await asyncio.gather(
                _resolve(self.settings.enabled, request),
                _resolve(self.settings.path, request),
            )
            if not enabled:
                raise _SkipFileCache("disabled")
            if path is None:
                raise _SkipFileCache("no path")
            path = Path(path)

            if await aiofiles.os.path.isfile(path):
                logger.debug(f"File cache hit: {request.url.path} -> {path}")
                return await _call(self.settings.on_cached_file, request, path)

            logger.debug(f"File cache miss: {request.url.path} -> {path} (not on disk)")
            request.state.cache_path = path
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            if self.settings.on_create_file is not None:
                await _call(self.settings.on_create_file, request, path)

        except _SkipFileCache as skip:
            logger.debug(f"File cache skipped for {request.url.path}: {skip}")
        except OSError as e:
            logger.error(f"File cache staging failed for {request.url.path}: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "File cache staging failed", "details": str(e)},
            )

        return await call_next(request)

    def _make_cache_send(
        self, request: Request
    ) -> Callable[..., Awaitable[Response]]:
        async def cache_send(content: Any, options: CacheSendOptions | None = None) -> Response:
            """Send content as the response, persisting it to the staged path."""
            opts = options or CacheSendOptions()
            path: Path | None = request.state.cache_path
            persist = opts.write_through and path is not None

            if isinstance(content, BUFFER_TYPES):
                if persist:
                    await self._write_buffer(path, content)
                return Response(
                    content=bytes(content) if isinstance(content, (bytearray, memoryview)) else content,
                    status_code=opts.status_code,
                    headers=dict(opts.headers) if opts.headers else None,
                    media_type=opts.media_type,
                )

            if isinstance(content, AsyncIterable):
                if persist:
                    await self._write_stream(path, content)
                    return FileResponse(
                        path,
                        status_code=opts.status_code,
                        headers=dict(opts.headers) if opts.headers else None,
                        media_type=opts.media_type,
                    )
                return StreamingResponse(
                    self._relay(request, content),
                    status_code=opts.status_code,
                    headers=dict(opts.headers) if opts.headers else None,
                    media_type=opts.media_type,
                )

            raise UnsupportedContentType(type(content).__name__)

        return cache_send

    async def _write_buffer(self, path: Path, content: str | bytes | bytearray | memoryview) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        temp_path = _temp_path(path)
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, path)
        except OSError:
            await _discard(temp_path)
            raise
        logger.debug(f"File cache stored {len(data)} bytes at {path}")

    async def _write_stream(self, path: Path, stream: AsyncIterable[str | bytes]) -> None:
        temp_path = _temp_path(path)
        size = 0
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in stream:
                    data = chunk.encode("utf-8") if isinstance(chunk, str) else chunk
                    size += len(data)
                    await f.write(data)
            await aiofiles.os.replace(temp_path, path)
        except Exception as e:
            logger.error(f"File cache stream to {path} failed: {e}")
            await _discard(temp_path)
            raise
        logger.debug(f"File cache streamed {size} bytes to {path}")

    async def _relay(
        self, request: Request, stream: AsyncIterable[str | bytes]
    ) -> AsyncIterator[str | bytes]:
        try:
            async for chunk in stream:
                yield chunk
        except Exception as e:
            logger.error(f"Response stream for {request.url.path} failed: {e}")
            raise
