# freeze_dry/api.py
# The primary, programmer-facing API for the library.

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup

from freeze_dry.capabilities import (
    ArchiveIO,
    CancellationSignal,
    Fetch,
    GetDocument,
    ResolveURL,
    no_live_document,
)
from freeze_dry.config import load_config
from freeze_dry.fetcher import HttpFetcher, SharedFetch
from freeze_dry.freeze import capture
from freeze_dry.live import BrowserSession
from freeze_dry.models import ArchiveMetadata, ArchiveOptions, CaptureResult
from freeze_dry.policies import (
    SIBLING_FILES_CONTENT_SECURITY_POLICY,
    SiblingFiles,
    make_policy,
)
from freeze_dry.resource import ArchiveContext

log = logging.getLogger(__name__)


async def freeze_dry(
    url: str,
    *,
    document: BeautifulSoup | None = None,
    content_security_policy: str | None = None,
    add_metadata: bool | None = None,
    keep_original_attributes: bool | None = None,
    resolve_policy: str | None = None,
    dedupe_urls: bool | None = None,
    use_browser: bool | None = None,
    resolve_url: Optional[ResolveURL] = None,
    fetch: Optional[Fetch] = None,
    get_document: Optional[GetDocument] = None,
    signal: CancellationSignal | None = None,
    now: datetime | None = None,
) -> CaptureResult:
    """
    Capture the document at ``url`` as a single self-contained HTML string.

    Args:
        url: The document to capture. Also the base for its relative links.
        document: An already loaded document to capture instead of fetching ``url``.
        content_security_policy: Policy to embed; defaults to a restrictive one.
        add_metadata: Embed the original URL and capture time (Memento tags).
        keep_original_attributes: Keep rewritten values in ``data-original-*``.
        resolve_policy: "inline", "files" or "absolute".
        dedupe_urls: Fetch each URL once per capture, however often it is linked.
        use_browser: Render the page in headless Chromium and capture the result.
        resolve_url: Custom resolution policy, overrides ``resolve_policy``.
        fetch: Custom fetch capability, replaces the built-in HTTP client.
        get_document: Custom live-frame lookup.
        signal: Cancellation signal; cancel it to abort the capture.
        now: Capture time, defaults to the current UTC time.

    Returns:
        A CaptureResult with the markup and the errors that were recovered from.
    """
    log.info("Starting new capture for: %s", url)

    # Load base config from defaults + pyproject.toml
    config = load_config()
    log.debug("Loaded base configuration.")

    overrides = {
        "content_security_policy": content_security_policy,
        "add_metadata": add_metadata,
        "keep_original_attributes": keep_original_attributes,
        "resolve_policy": resolve_policy,
        "dedupe_urls": dedupe_urls,
        "use_browser": use_browser,
    }
    for key, value in overrides.items():
        if value is not None:
            config[key] = value
            log.info("Applied override - %s set to: %s", key, value)

    policy = resolve_url or make_policy(config["resolve_policy"])
    csp = config["content_security_policy"]
    if csp is None and isinstance(policy, SiblingFiles):
        csp = SIBLING_FILES_CONTENT_SECURITY_POLICY

    captured_at = now or datetime.now(timezone.utc)
    options = ArchiveOptions(
        url=url,
        content_security_policy=csp,
        metadata=ArchiveMetadata(time=captured_at) if config["add_metadata"] else None,
        keep_original_attributes=bool(config["keep_original_attributes"]),
    )

    async with AsyncExitStack() as stack:
        if fetch is None:
            fetch = await stack.enter_async_context(HttpFetcher(config))
        if config["dedupe_urls"]:
            fetch = SharedFetch(fetch)

        if config["use_browser"] and document is None:
            session = await stack.enter_async_context(BrowserSession(config))
            snapshot = await session.snapshot(url)
            document = snapshot.document
            if get_document is None:
                get_document = snapshot.get_document

        io = ArchiveIO(
            fetch=fetch,
            resolve_url=policy,
            get_document=get_document or no_live_document,
            signal=signal or CancellationSignal(),
        )
        context = ArchiveContext(options=options, io=io, document=document)
        html = await capture(context)

    log.info(
        "Capture complete. %d bytes of markup, %d recovered error(s).",
        len(html),
        len(context.errors),
    )
    return CaptureResult(
        url=url,
        html=html,
        captured_at=captured_at.isoformat(),
        errors=list(context.errors),
        files=dict(policy.files) if isinstance(policy, SiblingFiles) else {},
    )
