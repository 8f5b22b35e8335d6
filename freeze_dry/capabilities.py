# freeze_dry/capabilities.py
"""
The capability bundle every resource receives. Resources never construct
their own transport or policies; they call what the caller injected.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from bs4 import BeautifulSoup, Tag

from freeze_dry.errors import CaptureCancelledError
from freeze_dry.models import FetchResponse

if TYPE_CHECKING:
    from freeze_dry.resource import Resource

log = logging.getLogger(__name__)

T = TypeVar("T")

# fetch(url, *, signal, cache, follow_redirects) -> FetchResponse
Fetch = Callable[..., Awaitable[FetchResponse]]
ResolveURL = Callable[["Resource"], Awaitable[str]]
GetDocument = Callable[[Tag], Awaitable[Optional[BeautifulSoup]]]


class CancellationSignal:
    """One per capture. Once triggered, every guarded operation fails fast."""

    def __init__(self) -> None:
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self.reason: str | None = None

    def _get_event(self) -> asyncio.Event:
        # created lazily so the signal can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Capture cancelled") -> None:
        if self._cancelled:
            return
        log.info("Cancellation requested: %s", reason)
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CaptureCancelledError(self.reason or "Capture cancelled")

    async def wait(self) -> None:
        await self._get_event().wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the signal fires first, in which case it is cancelled."""
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self.raise_if_cancelled()
        return task.result()


async def no_live_document(frame: Tag) -> Optional[BeautifulSoup]:
    """Default ``get_document``: no live frames, always fetch over the network."""
    return None


@dataclass
class ArchiveIO:
    fetch: Fetch
    resolve_url: ResolveURL
    get_document: GetDocument = no_live_document
    signal: CancellationSignal = field(default_factory=CancellationSignal)
