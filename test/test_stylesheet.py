from __future__ import annotations

import pytest

from freeze_dry.errors import StyleSheetParseError
from freeze_dry.stylesheet import parse_stylesheet, unescape_css

SHEET = (
    '@import "base.css";\n'
    '@font-face { src: url(font.woff2) format("woff2"); }\n'
    "body { background: URL( 'bg.png' ) }\n"
)


def test_references_and_kinds():
    sheet = parse_stylesheet(SHEET)
    refs = sheet.references
    assert [r.slot.value for r in refs] == ["base.css", "font.woff2", "bg.png"]
    assert [r.kind for r in refs] == ["import", "url", "url"]
    assert [r.in_font_face for r in refs] == [False, True, False]


def test_untouched_sheet_serializes_to_source():
    sheet = parse_stylesheet(SHEET)
    assert sheet.serialize() == SHEET
    assert sheet.source == SHEET


def test_rewritten_slot_keeps_surrounding_text():
    sheet = parse_stylesheet(SHEET)
    sheet.references[2].slot.value = "data:image/png;base64,AA"
    out = sheet.serialize()
    assert "body { background: url('data:image/png;base64,AA') }" in out
    assert out.startswith('@import "base.css";')


def test_import_with_url_token():
    sheet = parse_stylesheet("@import url(print.css) print;\na { color: red }")
    assert [(r.kind, r.slot.value) for r in sheet.references] == [("import", "print.css")]


def test_comments_and_lookalikes_are_ignored():
    sheet = parse_stylesheet("/* url(no.png) */ a { b: myurl(x) }")
    assert sheet.references == []


def test_escaped_url_value():
    sheet = parse_stylesheet(r"a { background: url(a\)b.png) }")
    assert sheet.references[0].slot.value == "a)b.png"


def test_unescape_hex():
    assert unescape_css("\\26 B") == "&B"
    assert unescape_css("plain") == "plain"


@pytest.mark.parametrize(
    "source",
    [
        "a { color: red",
        "/* open",
        "a { content: 'x }",
        "a { background: url(x.png }",
        "a } b",
        "a { b: c) }",
    ],
)
def test_malformed_css_raises(source):
    with pytest.raises(StyleSheetParseError):
        parse_stylesheet(source)
