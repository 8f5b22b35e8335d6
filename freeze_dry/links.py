# freeze_dry/links.py
"""
The Link model and the canonicalization rule.

A link is rendered by a URL slot inside a text template. The template is the
full text of whatever holds the reference: an attribute value (a single URL,
a srcset list, an inline style), the text of a <style> element, or a whole
stylesheet file. Rewriting is done in two steps:

1. compute a mapping ``{Link: new_target}`` without touching anything;
2. ``commit_rewrites(mapping)`` updates the links and their slots, then
   writes every affected template back to its element exactly once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Union
from urllib.parse import urlsplit

from bs4 import Tag

from freeze_dry.errors import LinkResolutionError
from freeze_dry.models import SubresourceType

log = logging.getLogger(__name__)

_CSS_NEEDS_QUOTES = set(" \t\n\r\f\"'()\\")


@dataclass
class LinkOrigin:
    """Where a link was found. ``attribute`` is None for element text (<style>)."""

    element: Tag
    attribute: str | None = None


class UrlSlot:
    """
    One rewritable URL inside a template.

    style:
      - "raw":    the URL is written as-is (attribute values, srcset entries)
      - "url":    CSS ``url(...)`` token
      - "string": CSS string, as in ``@import "x.css"``
    """

    __slots__ = ("value", "original", "raw", "style", "quote")

    def __init__(self, value: str, *, raw: str | None = None, style: str = "raw", quote: str = ""):
        self.value = value
        self.original = value
        self.raw = value if raw is None else raw
        self.style = style
        self.quote = quote

    def render(self) -> str:
        if self.value == self.original:
            return self.raw
        if self.style == "raw":
            return self.value
        quote = self.quote
        if self.style == "string" and not quote:
            quote = '"'
        if self.style == "url" and not quote and any(c in _CSS_NEEDS_QUOTES for c in self.value):
            quote = '"'
        value = self.value
        if quote:
            value = (
                value.replace("\\", "\\\\")
                .replace(quote, "\\" + quote)
                .replace("\n", "\\a ")
            )
        if self.style == "url":
            return f"url({quote}{value}{quote})"
        return f"{quote}{value}{quote}"

    def __repr__(self) -> str:
        return f"UrlSlot({self.value!r}, style={self.style!r})"


Part = Union[str, UrlSlot]


class TextTemplate:
    """Literal text interleaved with URL slots, optionally bound to a DOM location."""

    def __init__(
        self,
        parts: List[Part],
        element: Tag | None = None,
        attribute: str | None = None,
    ):
        self.parts = parts
        self.element = element
        self.attribute = attribute
        self.original = self.render()

    @property
    def slots(self) -> List[UrlSlot]:
        return [p for p in self.parts if isinstance(p, UrlSlot)]

    def render(self) -> str:
        return "".join(p if isinstance(p, str) else p.render() for p in self.parts)

    def write(self) -> None:
        """Write the rendered text back to the element it was read from."""
        if self.element is None:
            return
        text = self.render()
        if self.attribute is None:
            self.element.string = text
        else:
            self.element[self.attribute] = text


@dataclass(eq=False)
class Link:
    """
    A reference from one resource to another. Compared and hashed by identity,
    because links are used as mapping keys.
    """

    target: str
    absolute_target: str
    subresource_type: SubresourceType = SubresourceType.NONE
    is_subresource: bool = False
    origin: LinkOrigin | None = None
    slot: UrlSlot | None = field(default=None, repr=False)
    template: TextTemplate | None = field(default=None, repr=False)


def top_link(url: str) -> Link:
    """The synthetic link that points at the root document."""
    return Link(
        target=url,
        absolute_target=url,
        subresource_type=SubresourceType.TOP,
        is_subresource=True,
    )


def _without_fragment(url: str) -> str:
    return url.split("#")[0]


def resolve_link(link: Link, base_url: str) -> str:
    """
    Compute the canonical target of ``link`` inside a resource located at ``base_url``.

    A link into the resource itself becomes a bare fragment (``#id``),
    everything else becomes the absolute URL. Does not modify the link.
    """
    try:
        fragment = urlsplit(link.absolute_target).fragment
        urlsplit(base_url)
    except ValueError as e:
        raise LinkResolutionError(
            f"Cannot resolve {link.absolute_target!r} against {base_url!r}: {e}"
        ) from e
    if fragment and _without_fragment(link.absolute_target) == _without_fragment(base_url):
        return "#" + fragment
    return link.absolute_target


def commit_rewrites(rewrites: Mapping[Link, str]) -> None:
    """Apply precomputed targets to their links, slots and DOM locations."""
    touched: List[TextTemplate] = []
    for link, target in rewrites.items():
        link.target = target
        if link.slot is not None:
            link.slot.value = target
        template = link.template
        if template is not None and not any(t is template for t in touched):
            touched.append(template)
    for template in touched:
        template.write()


def canonicalize_links(links: Iterable[Link], base_url: str) -> List[Link]:
    """Resolve every link against ``base_url`` and commit the result."""
    links = list(links)
    rewrites = {link: resolve_link(link, base_url) for link in links}
    commit_rewrites(rewrites)
    log.debug("Canonicalized %d link(s) against %s", len(links), base_url)
    return links
