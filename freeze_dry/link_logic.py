# freeze_dry/link_logic.py
"""
Link extraction from parsed documents and stylesheets.

Each extracted Link carries the absolute URL it resolves to and is bound to
the slot of the template it was read from, so that rewriting it later
updates the right attribute or stylesheet text.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from freeze_dry.errors import StyleSheetParseError
from freeze_dry.links import Link, LinkOrigin, Part, TextTemplate, UrlSlot
from freeze_dry.models import SubresourceType
from freeze_dry.stylesheet import StyleSheet, parse_stylesheet

log = logging.getLogger(__name__)

# Schemes a subresource can be fetched from. Anything else stays a plain link.
ALLOWED_SCHEMES = {"http", "https", "data"}

# rel values of <link> that point at an image
ICON_RELS = {
    "icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
    "mask-icon",
}

_WHITESPACE = " \t\n\r\f"

# (tag, attribute) -> subresource type; None marks a navigational link.
# <link>, <source>, <input> and srcset attributes are handled separately.
URL_ATTRIBUTES: Dict[Tuple[str, str], Optional[SubresourceType]] = {
    ("a", "href"): None,
    ("area", "href"): None,
    ("base", "href"): None,
    ("form", "action"): None,
    ("button", "formaction"): None,
    ("blockquote", "cite"): None,
    ("q", "cite"): None,
    ("ins", "cite"): None,
    ("del", "cite"): None,
    ("script", "src"): None,
    ("embed", "src"): None,
    ("object", "data"): None,
    ("track", "src"): None,
    ("img", "src"): SubresourceType.IMAGE,
    ("video", "src"): SubresourceType.VIDEO,
    ("video", "poster"): SubresourceType.IMAGE,
    ("audio", "src"): SubresourceType.AUDIO,
    ("iframe", "src"): SubresourceType.DOCUMENT,
    ("frame", "src"): SubresourceType.DOCUMENT,
    ("body", "background"): SubresourceType.IMAGE,
    ("table", "background"): SubresourceType.IMAGE,
    ("td", "background"): SubresourceType.IMAGE,
    ("th", "background"): SubresourceType.IMAGE,
}


def _scheme(u: str) -> str:
    try:
        return urlparse(u).scheme.lower()
    except ValueError:
        return ""


def is_fetchable_url(u: str) -> bool:
    """Return True iff URL uses a scheme a subresource can be loaded from."""
    return _scheme(u) in ALLOWED_SCHEMES


def _rel_list(tag: Tag) -> List[str]:
    rel = tag.get("rel", None)
    if not rel:
        return []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.strip().lower() for r in rel if isinstance(r, str)]


def _attribute_text(tag: Tag, attribute: str) -> str:
    value = tag.get(attribute)
    if isinstance(value, list):
        # multi-valued attributes come back as lists from bs4
        return " ".join(value)
    return value or ""


def get_base_uri(document: BeautifulSoup, doc_url: str) -> str:
    """Equivalent of ``document.baseURI`` with an overridable document URL."""
    base = document.find("base", href=True)
    if base is not None:
        try:
            return urljoin(doc_url, _attribute_text(base, "href").strip())
        except ValueError:
            log.debug("Ignoring unparsable <base href> in %s", doc_url)
    return doc_url


def parse_srcset(value: str) -> List[Part]:
    """
    Split a srcset value into literal text and URL slots.
    The URL of a candidate is its run of non-whitespace characters, minus
    trailing commas; descriptors run until the next top-level comma.
    """
    parts: List[Part] = []
    i = 0
    n = len(value)
    while i < n:
        j = i
        while j < n and (value[j] in _WHITESPACE or value[j] == ","):
            j += 1
        if j > i:
            parts.append(value[i:j])
            i = j
        if i >= n:
            break

        j = i
        while j < n and value[j] not in _WHITESPACE:
            j += 1
        url = value[i:j]
        k = len(url)
        while k > 0 and url[k - 1] == ",":
            k -= 1
        if k:
            parts.append(UrlSlot(url[:k]))
        i += k
        if k < len(url):
            continue

        depth = 0
        j = i
        while j < n:
            ch = value[j]
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth = max(0, depth - 1)
            elif ch == "," and depth == 0:
                break
            j += 1
        if j > i:
            parts.append(value[i:j])
        i = j
    return parts


def _resolve(base_url: str, value: str) -> Optional[str]:
    try:
        return urljoin(base_url, value)
    except ValueError:
        log.debug("Skipping unresolvable reference %r (base %s)", value, base_url)
        return None


def _bind(
    template: TextTemplate,
    base_url: str,
    subresource_type: Optional[SubresourceType],
    origin: Optional[LinkOrigin],
) -> List[Link]:
    links: List[Link] = []
    for slot in template.slots:
        if subresource_type is not None and not slot.value:
            continue
        absolute = _resolve(base_url, slot.value)
        if absolute is None:
            continue
        is_subresource = subresource_type is not None and is_fetchable_url(absolute)
        links.append(
            Link(
                target=slot.value,
                absolute_target=absolute,
                subresource_type=subresource_type or SubresourceType.NONE,
                is_subresource=is_subresource,
                origin=origin,
                slot=slot,
                template=template,
            )
        )
    return links


def _attribute_links(
    tag: Tag,
    attribute: str,
    base_url: str,
    subresource_type: Optional[SubresourceType],
) -> List[Link]:
    value = _attribute_text(tag, attribute).strip(_WHITESPACE)
    template = TextTemplate([UrlSlot(value)], element=tag, attribute=attribute)
    return _bind(template, base_url, subresource_type, LinkOrigin(tag, attribute))


def _srcset_links(tag: Tag, attribute: str, base_url: str) -> List[Link]:
    template = TextTemplate(
        parse_srcset(_attribute_text(tag, attribute)), element=tag, attribute=attribute
    )
    return _bind(template, base_url, SubresourceType.IMAGE, LinkOrigin(tag, attribute))


def _link_element_type(tag: Tag) -> Optional[SubresourceType]:
    rels = set(_rel_list(tag))
    if "stylesheet" in rels:
        return SubresourceType.STYLE
    if rels & ICON_RELS:
        return SubresourceType.IMAGE
    return None


def _source_element_type(tag: Tag) -> Optional[SubresourceType]:
    parent = tag.parent
    name = parent.name if isinstance(parent, Tag) else None
    if name == "audio":
        return SubresourceType.AUDIO
    if name == "video":
        return SubresourceType.VIDEO
    return None


def extract_links_from_css(sheet: StyleSheet, base_url: str) -> List[Link]:
    """url() references become images (fonts inside @font-face), @import targets styles."""
    template = sheet.template
    origin = None
    if template.element is not None:
        origin = LinkOrigin(template.element, template.attribute)

    links: List[Link] = []
    for ref in sheet.references:
        value = ref.slot.value
        if not value:
            continue
        absolute = _resolve(base_url, value)
        if absolute is None:
            continue
        if ref.kind == "import":
            subresource_type = SubresourceType.STYLE
        elif ref.in_font_face:
            subresource_type = SubresourceType.FONT
        else:
            subresource_type = SubresourceType.IMAGE
        # url(#id) refers to an SVG fragment of the embedding document
        is_subresource = not value.startswith("#") and is_fetchable_url(absolute)
        links.append(
            Link(
                target=value,
                absolute_target=absolute,
                subresource_type=subresource_type,
                is_subresource=is_subresource,
                origin=origin,
                slot=ref.slot,
                template=template,
            )
        )
    return links


def _inline_css_links(
    tag: Tag, attribute: Optional[str], source: str, base_url: str
) -> List[Link]:
    try:
        sheet = parse_stylesheet(source, element=tag, attribute=attribute)
    except StyleSheetParseError as e:
        log.debug("Leaving unparsable inline style untouched: %s", e)
        return []
    return extract_links_from_css(sheet, base_url)


def extract_links_from_dom(document: BeautifulSoup, doc_url: str) -> List[Link]:
    """Return every link found in ``document``, in document order."""
    base_url = get_base_uri(document, doc_url)
    links: List[Link] = []

    for tag in document.find_all(True):
        name = tag.name
        for attribute in list(tag.attrs):
            key = (name, attribute)
            if key in URL_ATTRIBUTES:
                base = doc_url if name == "base" else base_url
                links.extend(_attribute_links(tag, attribute, base, URL_ATTRIBUTES[key]))
            elif attribute == "srcset" and name in ("img", "source"):
                parent = tag.parent
                if name == "source" and isinstance(parent, Tag) and parent.name in ("audio", "video"):
                    continue
                links.extend(_srcset_links(tag, attribute, base_url))
            elif key == ("link", "href"):
                links.extend(_attribute_links(tag, attribute, base_url, _link_element_type(tag)))
            elif key == ("source", "src"):
                links.extend(_attribute_links(tag, attribute, base_url, _source_element_type(tag)))
            elif key == ("input", "src"):
                if _attribute_text(tag, "type").strip().lower() == "image":
                    links.extend(
                        _attribute_links(tag, attribute, base_url, SubresourceType.IMAGE)
                    )
            elif attribute == "style":
                links.extend(
                    _inline_css_links(tag, "style", _attribute_text(tag, "style"), base_url)
                )

        if name == "style":
            links.extend(_inline_css_links(tag, None, tag.get_text(), base_url))

    log.debug("Extracted %d link(s) from %s", len(links), doc_url)
    return links
