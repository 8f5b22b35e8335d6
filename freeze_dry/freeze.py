# freeze_dry/freeze.py
"""
Drive a capture: build the root document resource and serialize it. Each
resource rewrites its own children before it serializes, so serializing the
root walks the whole graph depth-first.
"""
from __future__ import annotations

import logging

from freeze_dry.resource import (
    AnyResource,
    ArchiveContext,
    ResourceKind,
    root_document,
)

log = logging.getLogger(__name__)


async def serialize(resource: AnyResource) -> str:
    """Freeze-dried text of any resource."""
    if resource.kind in (ResourceKind.DOCUMENT, ResourceKind.STYLESHEET):
        # rewrites children first, then re-emits the mutated tree or sheet
        return await resource.text()
    return await resource.download_text()


async def capture(context: ArchiveContext) -> str:
    """Serialize the document at ``context.url`` with all its subresources resolved."""
    root = root_document(context)
    log.info("Capturing %s", root.url)
    try:
        html = await serialize(root)
    except Exception as e:
        log.critical("Capture of %s failed: %s", root.url, e)
        raise
    finally:
        # Cells run shielded, so nothing else stops them once the capture is gone.
        pending = context.arena.cancel_pending()
        if pending:
            log.debug("Cancelled %d unfinished cell(s) of %s", pending, root.url)
    log.info(
        "Captured %s (%d bytes, %d cell(s), %d recovered error(s))",
        root.url,
        len(html),
        len(context.arena),
        len(context.errors),
    )
    return html
