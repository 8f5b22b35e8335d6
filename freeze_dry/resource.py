# freeze_dry/resource.py
"""
The resource graph.

Three kinds of resource, closed set:
  - Resource:           images, audio, video, fonts (leaves)
  - StyleSheetResource: stylesheets, links found by the stylesheet parser
  - DocumentResource:   documents, root or framed, links found in the markup

One instance exists per (parent, link) edge. Every lazily computed value of a
resource (response, text, links, child map, serialization...) is a write-once
cell in the capture's arena, keyed by (resource id, field), so it is computed
at most once no matter how many callers ask for it concurrently.
"""
from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from bs4 import BeautifulSoup

from freeze_dry.capabilities import ArchiveIO
from freeze_dry.dom_path import node_at_path, path_for_node
from freeze_dry.dom_static import (
    DEFAULT_CONTENT_SECURITY_POLICY,
    make_dom_static,
    set_content_security_policy,
    set_memento_tags,
)
from freeze_dry.errors import (
    FreezeDryError,
    LinkResolutionError,
    StyleSheetParseError,
    UnsupportedLinkTypeError,
    is_fatal,
)
from freeze_dry.link_logic import extract_links_from_css, extract_links_from_dom
from freeze_dry.links import Link, canonicalize_links, commit_rewrites, top_link
from freeze_dry.memo import CellArena
from freeze_dry.models import ArchiveOptions, Blob, FetchResponse, SubresourceType
from freeze_dry.stylesheet import StyleSheet, parse_stylesheet

log = logging.getLogger(__name__)

T = TypeVar("T")

_resource_ids = itertools.count(1)

MEDIA_TYPES = {
    SubresourceType.IMAGE,
    SubresourceType.AUDIO,
    SubresourceType.VIDEO,
    SubresourceType.FONT,
}

# Types whose resources have children of their own.
RECURSIVE_TYPES = {SubresourceType.STYLE, SubresourceType.DOCUMENT}


class ResourceKind(Enum):
    GENERIC = "generic"
    STYLESHEET = "stylesheet"
    DOCUMENT = "document"


@dataclass
class ArchiveContext:
    """
    State shared by every resource of one capture. Acts as the parent of the
    root document.
    """

    options: ArchiveOptions
    io: ArchiveIO
    # Live document for the root, when the caller already has one open.
    document: Optional[BeautifulSoup] = None
    arena: CellArena = field(default_factory=CellArena)
    errors: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        return self.options.url

    @property
    def context(self) -> "ArchiveContext":
        return self

    @property
    def resource_type(self) -> str:
        return "capture"

    async def source_document(self) -> Optional[BeautifulSoup]:
        return self.document

    def record_error(self, message: str) -> None:
        log.warning(message)
        self.errors.append(message)


Parent = Union[ArchiveContext, "Resource"]


@dataclass
class StyleSheetRecord:
    """A downloaded stylesheet. ``sheet`` is None when the source did not parse."""

    sheet: Optional[StyleSheet]
    links: List[Link]
    source: str
    url: str


class Resource:
    """A leaf resource (image, audio, video, font): fetched, never parsed."""

    kind = ResourceKind.GENERIC

    def __init__(self, parent: Parent, link: Link):
        self.parent = parent
        self.context: ArchiveContext = parent.context
        self.link = link
        self.id = next(_resource_ids)
        self.source_url = link.absolute_target

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self.id} {self.url}>"

    @property
    def io(self) -> ArchiveIO:
        return self.context.io

    @property
    def options(self) -> ArchiveOptions:
        return self.context.options

    @property
    def url(self) -> str:
        return self.link.absolute_target

    @property
    def resource_type(self) -> str:
        return self.link.subresource_type.value

    def _memo(self, name: str, factory: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        return self.context.arena.resolve(self.id, name, factory)

    # ---- Download ----------------------------------------------------------

    def download(self) -> Awaitable[FetchResponse]:
        """The raw response. Fetched once; a failure is remembered, not retried."""
        return self._memo("response", self._download)

    async def _download(self) -> FetchResponse:
        log.debug("Fetching %s %s", self.resource_type, self.url)
        return await self.io.fetch(
            self.url,
            signal=self.io.signal,
            cache="force-cache",
            follow_redirects=True,
        )

    def download_text(self) -> Awaitable[str]:
        return self._memo("text", self._download_text)

    async def _download_text(self) -> str:
        response = await self.download()
        return response.text()

    def download_blob(self) -> Awaitable[Blob]:
        return self._memo("blob", self._download_blob)

    async def _download_blob(self) -> Blob:
        response = await self.download()
        return response.blob()

    # ---- Graph -------------------------------------------------------------

    async def links(self) -> List[Link]:
        return []

    def resources(self) -> Awaitable[Dict[Link, "Resource"]]:
        """Immediate subresources, keyed by the link that references them."""
        return self._memo("resources", self._resources)

    async def _resources(self) -> Dict[Link, "Resource"]:
        return build_resource_map(self, await self.links(), hosts_documents=False)

    # ---- Serialization -----------------------------------------------------

    async def text(self) -> str:
        """Freeze-dried text. For a leaf this is just its content."""
        return await self.download_text()

    async def blob(self) -> Blob:
        return await self.download_blob()

    def replace_url(self, url: str) -> None:
        """
        Point the link that references this resource at ``url``.
        Mutates the parent's DOM: the attribute holding the link, the
        ``data-original-*`` note next to it, and the ``integrity`` attribute.
        """
        link = self.link
        origin = link.origin
        element = origin.element if origin is not None else None

        if self.options.keep_original_attributes and element is not None and origin.attribute:
            note = f"data-original-{origin.attribute}"
            # Several links may share one attribute (srcset); only the first one
            # writes the note. An existing note from an earlier capture is kept.
            if not element.has_attr(note):
                # The value as authored in the page. By now the attribute holds
                # the canonical absolute URL, which is not what the author wrote.
                if link.template is not None:
                    original = link.template.original
                else:
                    original = element.get(origin.attribute) or ""
                element[note] = original

        commit_rewrites({link: url})

        # The replacement content will not match a subresource integrity hash.
        if element is not None and element.has_attr("integrity"):
            del element["integrity"]


class StyleSheetResource(Resource):
    kind = ResourceKind.STYLESHEET

    def download_stylesheet(self) -> Awaitable[StyleSheetRecord]:
        return self._memo("stylesheet", self._download_stylesheet)

    async def _download_stylesheet(self) -> StyleSheetRecord:
        response = await self.download()
        source = await self.download_text()
        url = response.url or self.link.absolute_target
        try:
            sheet = parse_stylesheet(source)
        except StyleSheetParseError as e:
            log.info("Could not parse stylesheet %s (%s); keeping it verbatim", self.url, e)
            return StyleSheetRecord(sheet=None, links=[], source=source, url=self.link.absolute_target)
        links = canonicalize_links(extract_links_from_css(sheet, url), url)
        return StyleSheetRecord(sheet=sheet, links=links, source=source, url=url)

    def links(self) -> Awaitable[List[Link]]:
        return self._memo("links", self._links)

    async def _links(self) -> List[Link]:
        record = await self.download_stylesheet()
        return record.links

    def text(self) -> Awaitable[str]:
        return self._memo("serialized", self._serialize)

    async def _serialize(self) -> str:
        await rewrite_subresources(self)
        record = await self.download_stylesheet()
        return record.sheet.serialize() if record.sheet is not None else record.source

    async def blob(self) -> Blob:
        text = await self.text()
        return Blob(data=text.encode("utf-8"), type="text/css")


class DocumentResource(Resource):
    kind = ResourceKind.DOCUMENT

    @property
    def is_root(self) -> bool:
        return self.link.subresource_type is SubresourceType.TOP

    @property
    def resource_type(self) -> str:
        return "document"

    async def source_document(self) -> Optional[BeautifulSoup]:
        """
        The live document this one is a copy of, if any: for the root, what the
        caller passed in; for a frame, whatever ``io.get_document`` returns for
        the matching frame element of the parent's live document.
        """
        if self.link.subresource_type is not SubresourceType.DOCUMENT:
            return await self.parent.source_document()
        origin = self.link.origin
        if origin is None:
            return None
        parent_source = await self.parent.source_document()
        if parent_source is None:
            return None
        frame = node_at_path(path_for_node(origin.element), parent_source)
        if frame is None:
            return None
        return await self.io.get_document(frame)

    def capture_document(self) -> Awaitable[BeautifulSoup]:
        """The document to archive. Captured once, then mutated in place."""
        return self._memo("document", self._capture_document)

    async def _capture_document(self) -> BeautifulSoup:
        source = await self.source_document()
        if source is not None:
            log.debug("Cloning live document for %s", self.url)
            return copy.copy(source)
        return BeautifulSoup(await self.download_text(), "html.parser")

    def links(self) -> Awaitable[List[Link]]:
        return self._memo("links", self._links)

    async def _links(self) -> List[Link]:
        document = await self.capture_document()
        return canonicalize_links(extract_links_from_dom(document, self.url), self.url)

    async def _resources(self) -> Dict[Link, Resource]:
        return build_resource_map(self, await self.links(), hosts_documents=True)

    def text(self) -> Awaitable[str]:
        return self._memo("serialized", self._serialize)

    async def _serialize(self) -> str:
        await rewrite_subresources(self)
        document = await self.capture_document()
        make_dom_static(document)
        if self.is_root:
            self.set_metadata(document, self.options)
        return str(document)

    async def blob(self) -> Blob:
        text = await self.text()
        return Blob(data=text.encode("utf-8"), type="text/html")

    def set_metadata(self, document: BeautifulSoup, options: ArchiveOptions) -> None:
        if options.metadata is not None:
            set_memento_tags(document, self.url, options.metadata.time)
        set_content_security_policy(
            document, options.content_security_policy or DEFAULT_CONTENT_SECURITY_POLICY
        )


AnyResource = Union[Resource, StyleSheetResource, DocumentResource]


def create_resource(parent: Resource, link: Link, hosts_documents: bool) -> Resource:
    """The one place that decides which kind of resource a link leads to."""
    subresource_type = link.subresource_type
    if subresource_type in MEDIA_TYPES:
        return Resource(parent, link)
    if subresource_type is SubresourceType.STYLE:
        return StyleSheetResource(parent, link)
    if subresource_type is SubresourceType.DOCUMENT and hosts_documents:
        return DocumentResource(parent, link)
    raise UnsupportedLinkTypeError(
        f'Resource "{parent.resource_type}" can not link to resource of type '
        f'"{subresource_type.value}"'
    )


def _without_fragment(url: str) -> str:
    return url.split("#")[0]


def _links_back_to_ancestor(parent: Resource, link: Link) -> bool:
    """True if ``link`` leads to ``parent`` itself or to one of its ancestors."""
    target = _without_fragment(link.absolute_target)
    node: Parent = parent
    while isinstance(node, Resource):
        if _without_fragment(node.url) == target:
            return True
        node = node.parent
    return False


def build_resource_map(
    parent: Resource, links: List[Link], *, hosts_documents: bool
) -> Dict[Link, Resource]:
    resources: Dict[Link, Resource] = {}
    for link in links:
        # navigation links, same-resource fragments, unfetchable schemes
        if not link.is_subresource:
            continue
        if link.subresource_type in RECURSIVE_TYPES and _links_back_to_ancestor(parent, link):
            parent.context.record_error(
                f"Not archiving {link.subresource_type.value} {link.absolute_target} "
                f"(linked from {parent.url}): it would contain itself"
            )
            continue
        resources[link] = create_resource(parent, link, hosts_documents)
    log.debug("%r has %d subresource(s)", parent, len(resources))
    return resources


def root_document(context: ArchiveContext) -> DocumentResource:
    return DocumentResource(context, top_link(context.url))


async def _resolve_child(resource: Resource) -> str:
    resource.io.signal.raise_if_cancelled()
    try:
        return await resource.io.resolve_url(resource)
    except FreezeDryError:
        raise
    except Exception as e:
        raise LinkResolutionError(f"Resolution policy failed for {resource.url}: {e}") from e


async def rewrite_subresources(resource: Resource) -> None:
    """
    Resolve every child of ``resource`` concurrently, then point each link at
    its replacement. A child that fails keeps its absolute URL; fatal errors
    (unsupported link types, cancellation, bugs) abort the capture.
    """
    resources = await resource.resources()
    children = list(resources.values())
    outcomes: List[Any] = await asyncio.gather(
        *(_resolve_child(child) for child in children), return_exceptions=True
    )

    rewrites: Dict[Resource, str] = {}
    for child, outcome in zip(children, outcomes):
        if isinstance(outcome, BaseException):
            if is_fatal(outcome):
                raise outcome
            resource.context.record_error(
                f"Could not archive {child.resource_type} {child.url} "
                f"(linked from {resource.url}): {outcome}"
            )
            continue
        rewrites[child] = outcome

    for child, url in rewrites.items():
        child.replace_url(url)
    log.debug("Rewrote %d of %d subresource link(s) in %s", len(rewrites), len(children), resource.url)
