from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple, Union

import pytest

from freeze_dry.capabilities import ArchiveIO, CancellationSignal, no_live_document
from freeze_dry.errors import FetchError
from freeze_dry.models import ArchiveOptions, FetchResponse
from freeze_dry.policies import inline_data_url
from freeze_dry.resource import ArchiveContext


class FakeSite:
    """In-memory web: url -> (body, content type). Unknown URLs fail like a 404."""

    def __init__(self, drop_fragments: bool = False) -> None:
        # Real HTTP clients never send the fragment.
        self.drop_fragments = drop_fragments
        self.pages: Dict[str, Tuple[bytes, str]] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[str] = []

    def add(self, url: str, body: Union[str, bytes], content_type: str = "text/html") -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.pages[url] = (body, content_type)

    async def fetch(
        self,
        url: str,
        *,
        signal: Optional[CancellationSignal] = None,
        cache: str = "force-cache",
        follow_redirects: bool = True,
    ) -> FetchResponse:
        if self.drop_fragments:
            url = url.split("#")[0]
        self.calls.append(url)
        if signal is not None:
            signal.raise_if_cancelled()
        delay = self.delays.get(url)
        if delay:
            sleep = asyncio.sleep(delay)
            await (signal.guard(sleep) if signal is not None else sleep)
        else:
            await asyncio.sleep(0)
        if url not in self.pages:
            raise FetchError(f"HTTP 404 for {url}", url=url)
        body, content_type = self.pages[url]
        return FetchResponse(url=url, status=200, content=body, headers={"content-type": content_type})


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


def make_context(
    site: FakeSite,
    url: str,
    *,
    resolve_url=inline_data_url,
    document=None,
    get_document=no_live_document,
    **options,
) -> ArchiveContext:
    io = ArchiveIO(fetch=site.fetch, resolve_url=resolve_url, get_document=get_document)
    return ArchiveContext(options=ArchiveOptions(url=url, **options), io=io, document=document)


@pytest.fixture
def context_for(site: FakeSite):
    """Build an ArchiveContext over the fake site: context_for(url, **options)."""

    def _make(url: str, **kwargs) -> ArchiveContext:
        return make_context(site, url, **kwargs)

    return _make
