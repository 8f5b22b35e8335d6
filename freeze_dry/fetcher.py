# freeze_dry/fetcher.py
"""
HTTPX-based fetch capability.

Responsibilities:
- GET over HTTP(S) with redirects and timeouts.
- "force-cache" semantics: answer from the on-disk cache when possible,
  store successful responses.
- Decode data: URLs locally, so already-inlined content can be re-archived.
- Honor the capture's cancellation signal.
- Turn every transport failure into a FetchError.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import unquote_to_bytes, urlparse

import httpx

from freeze_dry.cache import CacheConfig, FileCache
from freeze_dry.capabilities import CancellationSignal, Fetch
from freeze_dry.errors import FetchError
from freeze_dry.memo import CellArena
from freeze_dry.models import FetchResponse

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

FETCHABLE_SCHEMES = {"http", "https"}


def decode_data_url(url: str) -> FetchResponse:
    """Decode ``data:[<media type>][;base64],<data>``."""
    header, sep, payload = url[len("data:"):].partition(",")
    if not sep:
        raise FetchError(f"Malformed data URL: {url[:64]}", url=url)
    params = header.split(";")
    is_base64 = params[-1].strip().lower() == "base64"
    if is_base64:
        params = params[:-1]
    content_type = ";".join(params).strip() or "text/plain;charset=US-ASCII"
    try:
        raw = unquote_to_bytes(payload)
        content = base64.b64decode(raw) if is_base64 else raw
    except ValueError as e:
        raise FetchError(f"Malformed data URL: {e}", url=url) from e
    return FetchResponse(url=url, status=200, content=content, headers={"content-type": content_type})


@dataclass
class HttpFetcher:
    """
    Fetch capability backed by httpx.AsyncClient, used as an async context manager.

    Config keys consumed:
      - user_agent: str
      - timeout: float (seconds)
      - cache: {enabled, directory, expire_seconds, store_errors}
    """

    config: Dict[str, Any]
    transport: Optional[httpx.AsyncBaseTransport] = None

    _client: httpx.AsyncClient = field(init=False, repr=False)
    _cache: Optional[FileCache] = field(default=None, init=False, repr=False)
    fetch_count: int = field(default=0, init=False)

    async def __aenter__(self) -> "HttpFetcher":
        headers = {"User-Agent": self.config.get("user_agent", DEFAULT_USER_AGENT)}

        cache_cfg_raw = self.config.get("cache") or {}
        if cache_cfg_raw.get("enabled", False):
            self._cache = FileCache(
                CacheConfig(
                    enabled=True,
                    directory=str(cache_cfg_raw.get("directory", CacheConfig.directory)),
                    expire_seconds=int(cache_cfg_raw.get("expire_seconds", 24 * 3600)),
                    store_errors=bool(cache_cfg_raw.get("store_errors", False)),
                )
            )

        self._client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.config.get("timeout", 10.0),
            headers=headers,
            transport=self.transport,
        )
        log.info("httpx session initialized.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._client.aclose()
        if self._cache:
            self._cache.close()
        log.info("httpx session closed after %d request(s).", self.fetch_count)

    async def __call__(
        self,
        url: str,
        *,
        signal: Optional[CancellationSignal] = None,
        cache: str = "force-cache",
        follow_redirects: bool = True,
    ) -> FetchResponse:
        if signal is not None:
            signal.raise_if_cancelled()

        scheme = urlparse(url).scheme.lower()
        if scheme == "data":
            return decode_data_url(url)
        if scheme not in FETCHABLE_SCHEMES:
            raise FetchError(f"Cannot fetch {url}: unsupported scheme {scheme!r}", url=url)

        if cache == "force-cache" and self._cache is not None:
            hit = self._cache.get_response(url)
            if hit is not None:
                log.debug("Cache hit for %s", url)
                return hit

        self.fetch_count += 1
        request = self._client.get(url, follow_redirects=follow_redirects)
        try:
            resp = await (signal.guard(request) if signal is not None else request)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP error for {url}: {e}", url=url) from e
        except httpx.RequestError as e:
            raise FetchError(f"Network error fetching {url}: {e}", url=url) from e

        response = FetchResponse(
            url=str(resp.url),
            status=resp.status_code,
            content=resp.content,
            headers={k.lower(): v for k, v in resp.headers.items()},
            encoding=resp.charset_encoding,
        )
        if cache != "no-store" and self._cache is not None:
            self._cache.set_response(url, response)
        log.debug("Fetched %s (%d, %d bytes)", url, resp.status_code, len(resp.content))
        return response


class SharedFetch:
    """
    URL-keyed memoization above a fetch capability: all resources asking for
    the same URL share one request and its outcome, failures included.
    Off by default; one resource per graph edge is the standard behavior.
    """

    def __init__(self, fetch: Fetch):
        self._fetch = fetch
        self._arena = CellArena()

    async def __call__(self, url: str, **kwargs: Any) -> FetchResponse:
        return await self._arena.resolve(url, "response", lambda: self._fetch(url, **kwargs))
