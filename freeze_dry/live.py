# freeze_dry/live.py
"""
Playwright-based live document source.

Loads a page in headless Chromium (scripts run), then snapshots the DOM of
the page and, recursively, of every frame. The snapshot serves as the root's
source document and implements the ``get_document`` capability, so framed
documents are copied from what the browser rendered instead of re-fetched.

Frames are matched by DOM path: the browser computes the path of each frame
element, and ``get_document`` computes the same path on the parsed copy.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Browser, Frame, Page, Playwright, async_playwright

from freeze_dry.dom_path import path_for_node, root_of
from freeze_dry.fetcher import DEFAULT_USER_AGENT

log = logging.getLogger(__name__)

# Element-only child indices from the document down to the element.
_DOM_PATH_JS = """
(element) => {
  const path = [];
  let node = element;
  while (node.parentElement) {
    path.unshift(Array.prototype.indexOf.call(node.parentElement.children, node));
    node = node.parentElement;
  }
  path.unshift(0);
  return path;
}
"""


@dataclass
class FrameSnapshot:
    markup: str
    url: str = ""
    children: Dict[Tuple[int, ...], "FrameSnapshot"] = field(default_factory=dict)
    _document: Optional[BeautifulSoup] = field(default=None, repr=False)

    @property
    def document(self) -> BeautifulSoup:
        if self._document is None:
            self._document = BeautifulSoup(self.markup, "html.parser")
        return self._document


class BrowserSnapshot:
    """A rendered page and its frames, frozen at snapshot time."""

    def __init__(self, root: FrameSnapshot):
        self.root = root
        self._by_document: Dict[int, FrameSnapshot] = {}
        self._register(root)

    def _register(self, snapshot: FrameSnapshot) -> BeautifulSoup:
        document = snapshot.document
        self._by_document[id(document)] = snapshot
        return document

    @property
    def document(self) -> BeautifulSoup:
        return self.root.document

    async def get_document(self, frame: Tag) -> Optional[BeautifulSoup]:
        owner = self._by_document.get(id(root_of(frame)))
        if owner is None:
            return None
        child = owner.children.get(tuple(path_for_node(frame)))
        if child is None:
            log.debug("No live frame at %s", path_for_node(frame))
            return None
        return self._register(child)


@dataclass
class BrowserSession:
    """
    Headless Chromium session, used as an async context manager.

    Config keys consumed:
      - user_agent: str
      - browser_timeout_ms: int
    """

    config: Dict[str, Any]

    _playwright: Playwright = field(init=False, repr=False)
    _browser: Browser = field(init=False, repr=False)
    _page: Page = field(init=False, repr=False)

    async def __aenter__(self) -> "BrowserSession":
        log.info("Starting headless browser session...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch()
        self._page = await self._browser.new_page(
            user_agent=self.config.get("user_agent", DEFAULT_USER_AGENT)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        log.info("Closing headless browser session...")
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()

    async def snapshot(self, url: str) -> BrowserSnapshot:
        timeout = self.config.get("browser_timeout_ms", 30000)
        log.info("Rendering %s", url)
        await self._page.goto(url, wait_until="load", timeout=timeout)
        root = await self._snapshot_frame(self._page.main_frame)
        return BrowserSnapshot(root)

    async def _snapshot_frame(self, frame: Frame) -> FrameSnapshot:
        snapshot = FrameSnapshot(markup=await frame.content(), url=frame.url)
        for child in frame.child_frames:
            try:
                element = await child.frame_element()
                path = await element.evaluate(_DOM_PATH_JS)
                snapshot.children[tuple(path)] = await self._snapshot_frame(child)
            except Exception as e:
                # detached or cross-process frames: leave them to the network
                log.debug("Skipping frame %s: %s", child.url, e)
        return snapshot
