# freeze_dry/cache.py
"""
File-backed HTTP response cache, consulted by "force-cache" fetches.

- Storage: diskcache.Cache.
- Location: a visible folder in CWD by default; "os-default" selects the
  OS-specific app cache dir via platformdirs.
- Scope: successful (2xx) responses of any content type, stored as bytes.
  Error responses only when store_errors is set.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Optional

import diskcache
from platformdirs import user_cache_dir as _user_cache_dir

from freeze_dry.models import FetchResponse

log = logging.getLogger(__name__)

DEFAULT_DIRECTORY = ".freeze_dry_cache"


@dataclasses.dataclass
class CacheConfig:
    enabled: bool = True
    # Either a concrete directory path, or "os-default".
    directory: str = DEFAULT_DIRECTORY
    expire_seconds: int = 24 * 3600  # 1 day
    store_errors: bool = False


class FileCache:
    """
    Thin wrapper over diskcache.
    Keys: request URLs. Values: dict with final_url, status, headers
    (lower-cased keys), content (bytes), content_type, encoding.
    """

    def __init__(self, cfg: CacheConfig, app_name: str = "freeze_dry"):
        self.cfg = cfg
        self.app_name = app_name
        self._cache: Optional[diskcache.Cache] = None
        if not cfg.enabled:
            log.info("Response cache disabled")
            return
        self.create_cache_object()

    def create_cache_object(self) -> None:
        if self._cache is not None:
            return
        directory = self.cfg.directory
        if directory == "os-default":
            directory = _user_cache_dir(self.app_name, appauthor=False)
        log.debug("Response cache at %s", directory)
        self._cache = diskcache.Cache(directory)

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    # ---- Introspection helpers ---------------------------------------------

    @property
    def directory(self) -> Optional[str]:
        if self._cache is None:
            return None
        return str(self._cache.directory)

    def _dir_size_bytes(self) -> int:
        d = self.directory
        if not d or not Path(d).exists():
            return 0
        total = 0
        for p in Path(d).rglob("*"):
            try:
                if p.is_file():
                    total += p.stat().st_size
            except OSError:
                continue
        return total

    def stats(self) -> dict[str, int | str]:
        """Items in the cache, bytes on disk, absolute directory."""
        if self._cache is None:
            return {"items": 0, "bytes": 0, "directory": ""}
        return {
            "items": len(self._cache),
            "bytes": self._dir_size_bytes(),
            "directory": os.path.abspath(self.directory or ""),
        }

    def clear_all(self) -> None:
        if self._cache is None:
            log.warning("Cache disabled, nothing to clear")
            return
        self._cache.clear()

    # ---- Public API ---------------------------------------------------------

    def get(self, url: str) -> Optional[dict[str, Any]]:
        if self._cache is None:
            return None
        return self._cache.get(url)  # respects expirations

    def get_response(self, url: str) -> Optional[FetchResponse]:
        record = self.get(url)
        if not record:
            return None
        return FetchResponse(
            url=record.get("final_url") or url,
            status=int(record.get("status", 200)),
            content=record.get("content", b""),
            headers=dict(record.get("headers", {})),
            encoding=record.get("encoding"),
        )

    def set_response(self, url: str, response: FetchResponse) -> None:
        if self._cache is None:
            return
        if not 200 <= response.status < 300 and not self.cfg.store_errors:
            log.debug("Not caching %s, got %d", url, response.status)
            return
        self._cache.set(
            url,
            {
                "final_url": response.url,
                "status": response.status,
                "headers": {k.lower(): v for k, v in (response.headers or {}).items()},
                "content": response.content,
                "content_type": response.content_type.lower(),
                "encoding": response.encoding,
            },
            expire=self.cfg.expire_seconds,
        )
