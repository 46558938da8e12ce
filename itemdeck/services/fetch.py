"""
Fetch capability.

The engine never opens connections itself: every document is retrieved
through a fetch callable `location -> bytes` supplied by the caller, which
may be synchronous or a coroutine function. Two implementations ship with
the package, one over HTTP (httpx) and one over the local filesystem.

A fetch that definitely found nothing (HTTP 404/410, missing file) raises
FetchError with `missing=True`; the loader uses that to try the next naming
convention. Anything else is a fatal FetchError.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from types import TracebackType

import httpx

from itemdeck.config import settings
from itemdeck.models.failure import FetchError

logger = logging.getLogger(__name__)

Fetch = Callable[[str], bytes | str | Awaitable[bytes | str]]

# Status codes that mean "no such document" rather than "fetch failed"
_MISSING_STATUS = frozenset({404, 410})


class HttpFetcher:
    """
    Fetch documents over HTTP(S).

    Used directly, each call opens a short-lived client. Used as an async
    context manager, one client is shared by every call until exit.
    """

    def __init__(
        self,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.headers = {"User-Agent": settings.user_agent, "Accept": "application/json"}
        if headers:
            self.headers.update(headers)
        self._client = client
        self._owns_client = False

    async def __aenter__(self) -> "HttpFetcher":
        if self._client is None:
            self._client = self._new_client()
            self._owns_client = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            follow_redirects=True,
        )

    async def __call__(self, location: str) -> bytes:
        """
        GET a document.

        Raises:
            FetchError: On transport errors or non-success status
                (`missing=True` for 404 / 410)
        """
        try:
            if self._client is not None:
                response = await self._client.get(location)
            else:
                async with self._new_client() as client:
                    response = await client.get(location)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(
                f"HTTP {status}",
                location=location,
                missing=status in _MISSING_STATUS,
            ) from e
        except httpx.RequestError as e:
            raise FetchError(
                "Request failed",
                location=location,
                detail=str(e) or type(e).__name__,
            ) from e

        logger.debug("Fetched %s (%d bytes)", location, len(response.content))
        return response.content


class FileFetcher:
    """Read documents from the local filesystem in a worker thread."""

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root is not None else None

    def _path(self, location: str) -> Path:
        path = Path(location.removeprefix("file://"))
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    async def __call__(self, location: str) -> bytes:
        """
        Read a file.

        Raises:
            FetchError: If the file cannot be read (`missing=True` if it
                does not exist)
        """
        path = self._path(location)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise FetchError("File not found", location=location, missing=True) from e
        except OSError as e:
            raise FetchError("Could not read file", location=location, detail=str(e)) from e

        logger.debug("Read %s (%d bytes)", path, len(data))
        return data


def fetcher_for(base_location: str) -> Fetch:
    """Default fetch for a base location: HTTP for http(s) URLs, files otherwise."""
    if base_location.startswith(("http://", "https://")):
        return HttpFetcher()
    return FileFetcher()


def join_location(base_location: str, *parts: str) -> str:
    """Append path segments to a base URL or directory."""
    location = base_location.rstrip("/")
    for part in parts:
        location = f"{location}/{part.strip('/')}"
    return location


async def call_fetch(fetch: Fetch, location: str, entity_type: str | None = None) -> bytes:
    """
    Invoke a caller-supplied fetch and normalise its outcome.

    Sync and async fetch callables are both accepted; sync ones run in a
    worker thread so concurrent fetches still overlap. str results are
    encoded as UTF-8. FileNotFoundError counts as "missing". Any other
    exception is wrapped in FetchError so callers only see load errors.

    Raises:
        FetchError: If the fetch fails or returns something other than
            bytes or text
    """
    try:
        if _is_async(fetch):
            result = fetch(location)
        else:
            result = await asyncio.to_thread(fetch, location)
        if inspect.isawaitable(result):
            result = await result
    except FetchError as e:
        if e.entity_type is None:
            e.entity_type = entity_type
        raise
    except FileNotFoundError as e:
        raise FetchError(
            "Document not found",
            location=location,
            entity_type=entity_type,
            missing=True,
        ) from e
    except Exception as e:
        raise FetchError(
            "Fetch failed",
            location=location,
            entity_type=entity_type,
            detail=f"{type(e).__name__}: {e}",
        ) from e

    if isinstance(result, str):
        return result.encode("utf-8")
    if isinstance(result, (bytes, bytearray)):
        return bytes(result)
    raise FetchError(
        "Fetch returned neither bytes nor text",
        location=location,
        entity_type=entity_type,
        detail=f"Got {type(result).__name__}",
    )


def _is_async(fetch: Fetch) -> bool:
    # Fetchers are often instances with an async __call__
    return inspect.iscoroutinefunction(fetch) or inspect.iscoroutinefunction(
        getattr(fetch, "__call__", None)
    )
