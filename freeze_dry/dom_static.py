# freeze_dry/dom_static.py
"""
Finalizing a captured document: strip what could run or change it, then
(root document only) stamp it with provenance and a content policy.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import format_datetime

from bs4 import BeautifulSoup, Tag

log = logging.getLogger(__name__)

# Blocks all connectivity and scripts; only inlined content may load.
DEFAULT_CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'none'",
        "img-src data:",
        "media-src data:",
        "style-src data: 'unsafe-inline'",
        "font-src data:",
        "frame-src data:",
    ]
)

URL_ATTRIBUTES_TO_NEUTRALIZE = ("href", "src", "action", "formaction")


def _is_http_equiv(tag: Tag, value: str) -> bool:
    return (tag.get("http-equiv") or "").strip().lower() == value


def make_dom_static(document: BeautifulSoup) -> BeautifulSoup:
    """Remove scripts and anything else that would make the snapshot change."""
    removed = 0
    for tag in document.find_all(["script", "noscript"]):
        if tag.decomposed:
            # nested inside a <noscript> removed just before
            continue
        tag.decompose()
        removed += 1
    for tag in document.find_all("meta"):
        if _is_http_equiv(tag, "refresh"):
            tag.decompose()
            removed += 1

    for tag in document.find_all(True):
        for attribute in list(tag.attrs):
            if attribute.lower().startswith("on") or attribute.lower() == "contenteditable":
                del tag[attribute]
        for attribute in URL_ATTRIBUTES_TO_NEUTRALIZE:
            value = tag.get(attribute)
            if isinstance(value, str) and value.strip().lower().startswith("javascript:"):
                tag[attribute] = "javascript:"
    log.debug("Made document static (%d element(s) removed)", removed)
    return document


def ensure_head(document: BeautifulSoup) -> Tag:
    head = document.find("head")
    if head is not None:
        return head
    head = document.new_tag("head")
    html = document.find("html")
    if html is not None:
        html.insert(0, head)
    else:
        document.insert(0, head)
    return head


def set_memento_tags(document: BeautifulSoup, original_url: str, datetime_: datetime) -> None:
    """
    Record where and when the snapshot was taken, using the Memento vocabulary:
    ``<link rel="original">`` and ``<meta http-equiv="Memento-Datetime">``.
    Existing tags are replaced, so re-archiving keeps exactly one of each.
    """
    head = ensure_head(document)
    for tag in document.find_all("meta"):
        if _is_http_equiv(tag, "memento-datetime"):
            tag.decompose()
    for tag in document.find_all("link"):
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "original" in [r.lower() for r in rel]:
            tag.decompose()

    if datetime_.tzinfo is None:
        datetime_ = datetime_.replace(tzinfo=timezone.utc)
    meta = document.new_tag("meta")
    meta["http-equiv"] = "Memento-Datetime"
    meta["content"] = format_datetime(datetime_.astimezone(timezone.utc), usegmt=True)
    link = document.new_tag("link", rel="original", href=original_url)
    head.insert(0, meta)
    head.insert(0, link)


def set_content_security_policy(document: BeautifulSoup, policy: str) -> None:
    """Put a single CSP <meta> tag first in <head>, dropping any earlier one."""
    head = ensure_head(document)
    for tag in document.find_all("meta"):
        if _is_http_equiv(tag, "content-security-policy"):
            tag.decompose()
    meta = document.new_tag("meta")
    meta["http-equiv"] = "Content-Security-Policy"
    meta["content"] = policy
    head.insert(0, meta)
