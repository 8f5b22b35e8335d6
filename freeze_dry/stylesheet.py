# freeze_dry/stylesheet.py
"""
A small CSS reader that keeps the source intact.

The parser does not build a rule tree; it scans the source once, turns every
``url(...)`` token and every ``@import`` target into a rewritable URL slot,
and validates the structure well enough to reject broken input (unclosed
comments, strings, ``url(`` tokens, blocks or brackets). Serializing a sheet
whose slots were not touched reproduces the source byte for byte.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List

from bs4 import Tag

from freeze_dry.errors import StyleSheetParseError
from freeze_dry.links import Part, TextTemplate, UrlSlot

log = logging.getLogger(__name__)

_AT_KEYWORD_RE = re.compile(r"-?[A-Za-z_][A-Za-z0-9_-]*")
_NAME_CHAR_RE = re.compile(r"[A-Za-z0-9_-]")
_HEX_ESCAPE_RE = re.compile(r"\\([0-9A-Fa-f]{1,6})[ \t\n\r\f]?")
_WHITESPACE = " \t\n\r\f"


@dataclass
class StyleSheetReference:
    """A URL found in a stylesheet. kind is "url" or "import"."""

    slot: UrlSlot
    kind: str
    in_font_face: bool = False


class StyleSheet:
    """Parsed stylesheet: the source as a template plus the references found in it."""

    def __init__(self, template: TextTemplate, references: List[StyleSheetReference]):
        self.template = template
        self.references = references

    @property
    def source(self) -> str:
        return self.template.original

    def serialize(self) -> str:
        return self.template.render()


def unescape_css(value: str) -> str:
    """Resolve CSS escapes: ``\\26 `` style hex escapes, escaped newlines and literal escapes."""
    if "\\" not in value:
        return value

    def _hex(match: re.Match) -> str:
        codepoint = int(match.group(1), 16)
        if codepoint == 0 or codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF:
            return "�"
        return chr(codepoint)

    value = _HEX_ESCAPE_RE.sub(_hex, value)
    value = value.replace("\\\n", "")
    return re.sub(r"\\(.)", r"\1", value, flags=re.DOTALL)


def _scan_string(source: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``."""
    quote = source[start]
    i = start + 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            break
        i += 1
    raise StyleSheetParseError("Unclosed string", start)


def _skip_whitespace(source: str, i: int) -> int:
    while i < len(source) and source[i] in _WHITESPACE:
        i += 1
    return i


def _scan_url(source: str, start: int) -> tuple[int, str, str]:
    """
    Scan a ``url(`` token starting at ``start``.
    Returns (end index, unescaped value, quote character).
    """
    i = _skip_whitespace(source, start + 4)
    if i < len(source) and source[i] in "\"'":
        quote = source[i]
        end = _scan_string(source, i)
        value = unescape_css(source[i + 1 : end - 1])
        j = _skip_whitespace(source, end)
        if j >= len(source) or source[j] != ")":
            raise StyleSheetParseError("Unclosed url(", start)
        return j + 1, value, quote

    j = i
    while j < len(source):
        ch = source[j]
        if ch == "\\":
            j += 2
            continue
        if ch == ")":
            return j + 1, unescape_css(source[i:j].strip(_WHITESPACE)), ""
        if ch in "\"'(":
            break
        j += 1
    raise StyleSheetParseError("Unclosed url(", start)


def parse_stylesheet(
    source: str,
    element: Tag | None = None,
    attribute: str | None = None,
) -> StyleSheet:
    """
    Parse ``source`` into a StyleSheet. ``element``/``attribute`` bind the
    result to the DOM location the CSS came from (a <style> element or a
    ``style`` attribute), so that committed rewrites are written back there.

    Raises StyleSheetParseError on malformed input.
    """
    parts: List[Part] = []
    references: List[StyleSheetReference] = []
    blocks: List[bool] = []  # one entry per open "{", True inside @font-face
    parens = 0
    at_rule: str | None = None  # at-keyword of the prelude being read
    import_taken = False
    text_start = 0
    i = 0
    n = len(source)

    def flush(upto: int) -> None:
        if upto > text_start:
            parts.append(source[text_start:upto])

    while i < n:
        ch = source[i]

        if source.startswith("/*", i):
            end = source.find("*/", i + 2)
            if end < 0:
                raise StyleSheetParseError("Unclosed comment", i)
            i = end + 2
            continue

        if ch in "\"'":
            end = _scan_string(source, i)
            if at_rule == "import" and not import_taken:
                flush(i)
                slot = UrlSlot(
                    unescape_css(source[i + 1 : end - 1]),
                    raw=source[i:end],
                    style="string",
                    quote=ch,
                )
                parts.append(slot)
                references.append(StyleSheetReference(slot, "import"))
                import_taken = True
                text_start = end
            i = end
            continue

        if ch == "\\":
            i += 2
            continue

        if ch == "@":
            match = _AT_KEYWORD_RE.match(source, i + 1)
            if match:
                at_rule = match.group(0).lower()
                import_taken = False
                i = match.end()
                continue

        if (
            ch in "uU"
            and source[i : i + 4].lower() == "url("
            and (i == 0 or not _NAME_CHAR_RE.match(source[i - 1]))
        ):
            end, value, quote = _scan_url(source, i)
            flush(i)
            slot = UrlSlot(value, raw=source[i:end], style="url", quote=quote)
            parts.append(slot)
            if at_rule == "import" and not import_taken:
                references.append(StyleSheetReference(slot, "import"))
                import_taken = True
            else:
                references.append(
                    StyleSheetReference(slot, "url", in_font_face=any(blocks))
                )
            text_start = end
            i = end
            continue

        if ch == "{":
            blocks.append(at_rule == "font-face")
            at_rule = None
        elif ch == "}":
            if not blocks:
                raise StyleSheetParseError("Unexpected }", i)
            blocks.pop()
            at_rule = None
        elif ch == ";":
            at_rule = None
        elif ch == "(":
            parens += 1
        elif ch == ")":
            parens -= 1
            if parens < 0:
                raise StyleSheetParseError("Unexpected )", i)
        i += 1

    if blocks:
        raise StyleSheetParseError("Unclosed block", n)
    if parens:
        raise StyleSheetParseError("Unclosed bracket", n)

    flush(n)
    template = TextTemplate(parts, element=element, attribute=attribute)
    log.debug("Parsed stylesheet: %d reference(s)", len(references))
    return StyleSheet(template, references)
