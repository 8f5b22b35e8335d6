from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from freeze_dry.link_logic import (
    extract_links_from_css,
    extract_links_from_dom,
    get_base_uri,
    is_fetchable_url,
    parse_srcset,
)
from freeze_dry.links import UrlSlot, canonicalize_links
from freeze_dry.models import SubresourceType as T
from freeze_dry.stylesheet import parse_stylesheet

PAGE = """
<html><head>
<base href="https://cdn.example/assets/">
<link rel="stylesheet" href="site.css">
<link rel="icon" href="/favicon.ico">
<link rel="canonical" href="/page">
<style>body { background: url(bg.png) }</style>
</head><body>
<a href="other.html">x</a>
<img src="a.png" srcset="a2.png 2x">
<iframe src="frame.html"></iframe>
<video poster="p.jpg"><source src="v.mp4"></video>
<audio><source src="s.ogg"></audio>
<div style="background-image: url('d.png')"></div>
<input type="image" src="button.png">
<img src="mailto:x@example.com">
<img src="">
</body></html>
"""


def _by_url(links):
    return {link.absolute_target: (link.subresource_type, link.is_subresource) for link in links}


# ---------- fetchability filter ----------

@pytest.mark.parametrize(
    "u, ok",
    [
        ("http://example.com", True),
        ("https://example.com/x", True),
        ("data:image/png;base64,AA", True),
        ("mailto:user@example.com", False),
        ("javascript:alert(1)", False),
        ("ftp://example.com/file", False),
        ("about:blank", False),
        ("", False),
    ],
)
def test_is_fetchable_url(u, ok):
    assert is_fetchable_url(u) is ok


# ---------- srcset ----------

@pytest.mark.parametrize(
    "value, urls",
    [
        ("a.png 1x, b.png 2x", ["a.png", "b.png"]),
        ("a.png, b.png", ["a.png", "b.png"]),
        ("  a.png 480w ,b.png 800w", ["a.png", "b.png"]),
        ("data:image/png;base64,AAA= 1x", ["data:image/png;base64,AAA="]),
        ("", []),
    ],
)
def test_parse_srcset_urls(value, urls):
    parts = parse_srcset(value)
    assert [p.value for p in parts if isinstance(p, UrlSlot)] == urls
    # literal text and slots reassemble the original value
    assert "".join(p if isinstance(p, str) else p.render() for p in parts) == value


# ---------- documents ----------

def test_base_uri():
    soup = BeautifulSoup(PAGE, "html.parser")
    assert get_base_uri(soup, "https://example.com/page") == "https://cdn.example/assets/"
    plain = BeautifulSoup("<p>x</p>", "html.parser")
    assert get_base_uri(plain, "https://example.com/page") == "https://example.com/page"


def test_extract_links_from_dom_types():
    soup = BeautifulSoup(PAGE, "html.parser")
    found = _by_url(extract_links_from_dom(soup, "https://example.com/page"))

    assert found["https://cdn.example/assets/"] == (T.NONE, False)
    assert found["https://cdn.example/assets/site.css"] == (T.STYLE, True)
    assert found["https://cdn.example/favicon.ico"] == (T.IMAGE, True)
    assert found["https://cdn.example/page"] == (T.NONE, False)
    assert found["https://cdn.example/assets/bg.png"] == (T.IMAGE, True)
    assert found["https://cdn.example/assets/other.html"] == (T.NONE, False)
    assert found["https://cdn.example/assets/a.png"] == (T.IMAGE, True)
    assert found["https://cdn.example/assets/a2.png"] == (T.IMAGE, True)
    assert found["https://cdn.example/assets/frame.html"] == (T.DOCUMENT, True)
    assert found["https://cdn.example/assets/p.jpg"] == (T.IMAGE, True)
    assert found["https://cdn.example/assets/v.mp4"] == (T.VIDEO, True)
    assert found["https://cdn.example/assets/s.ogg"] == (T.AUDIO, True)
    assert found["https://cdn.example/assets/d.png"] == (T.IMAGE, True)
    assert found["https://cdn.example/assets/button.png"] == (T.IMAGE, True)
    # non-fetchable scheme: kept as a plain link
    assert found["mailto:x@example.com"] == (T.IMAGE, False)
    # the empty src is skipped, nothing resolves to the base itself as an image
    assert found.get("https://cdn.example/assets/") == (T.NONE, False)


def test_extracted_links_are_bound_to_their_attributes():
    soup = BeautifulSoup(PAGE, "html.parser")
    links = extract_links_from_dom(soup, "https://example.com/page")
    canonicalize_links(links, "https://example.com/page")

    img = soup.find("img")
    assert img["src"] == "https://cdn.example/assets/a.png"
    assert img["srcset"] == "https://cdn.example/assets/a2.png 2x"
    assert "url(https://cdn.example/assets/bg.png)" in soup.style.string
    assert "url('https://cdn.example/assets/d.png')" in soup.find("div")["style"]


def test_fragment_links_point_into_the_document():
    soup = BeautifulSoup('<a href="#top">t</a><a href="/x#top">u</a>', "html.parser")
    links = extract_links_from_dom(soup, "https://example.com/page")
    canonicalize_links(links, "https://example.com/page")
    anchors = soup.find_all("a")
    assert anchors[0]["href"] == "#top"
    assert anchors[1]["href"] == "https://example.com/x#top"


def test_non_fetchable_frame_is_not_a_subresource():
    soup = BeautifulSoup('<iframe src="javascript:void(0)"></iframe>', "html.parser")
    (link,) = extract_links_from_dom(soup, "https://example.com/")
    assert link.subresource_type is T.DOCUMENT
    assert not link.is_subresource


# ---------- stylesheets ----------

def test_extract_links_from_css():
    sheet = parse_stylesheet(
        '@import "x.css"; @font-face { src: url(f.woff) } a { background: url(#svg) }'
    )
    links = extract_links_from_css(sheet, "https://e.com/css/main.css")
    assert [link.subresource_type for link in links] == [T.STYLE, T.FONT, T.IMAGE]
    assert [link.absolute_target for link in links] == [
        "https://e.com/css/x.css",
        "https://e.com/css/f.woff",
        "https://e.com/css/main.css#svg",
    ]
    assert [link.is_subresource for link in links] == [True, True, False]
    assert all(link.origin is None for link in links)
