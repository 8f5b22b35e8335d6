from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from freeze_dry import CaptureResult, freeze_dry
from freeze_dry.dom_static import DEFAULT_CONTENT_SECURITY_POLICY
from freeze_dry.policies import SIBLING_FILES_CONTENT_SECURITY_POLICY

ROOT = "https://e.com/"
WHEN = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    # load_config reads ./pyproject.toml
    monkeypatch.chdir(tmp_path)


def _csp(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    return soup.find("meta", attrs={"http-equiv": "Content-Security-Policy"})["content"]


@pytest.mark.asyncio
async def test_inline_capture(site):
    site.add(ROOT, '<html><head></head><body><img src="a.png"><img src="gone.png"></body></html>')
    site.add("https://e.com/a.png", b"PNG", "image/png")

    result = await freeze_dry(ROOT, fetch=site.fetch, now=WHEN)

    assert isinstance(result, CaptureResult)
    assert result.url == ROOT
    assert result.captured_at == WHEN.isoformat()
    assert "data:image/png;base64,UE5H" in result.html
    assert "Tue, 02 Jan 2024 03:04:05 GMT" in result.html
    assert _csp(result.html) == DEFAULT_CONTENT_SECURITY_POLICY
    assert len(result.errors) == 1
    assert result.files == {}


@pytest.mark.asyncio
async def test_files_policy_collects_blobs(site):
    site.add(ROOT, '<img src="a.png">')
    site.add("https://e.com/a.png", b"PNG", "image/png")

    result = await freeze_dry(ROOT, fetch=site.fetch, resolve_policy="files", add_metadata=False)

    (name,) = result.files
    assert result.files[name].data == b"PNG"
    assert f'src="{name}"' in result.html
    assert "Memento-Datetime" not in result.html
    assert _csp(result.html) == SIBLING_FILES_CONTENT_SECURITY_POLICY


@pytest.mark.asyncio
async def test_dedupe_urls_fetches_once(site):
    site.add(ROOT, '<img src="a.png"><img src="a.png">')
    site.add("https://e.com/a.png", b"PNG", "image/png")

    await freeze_dry(ROOT, fetch=site.fetch)
    assert site.calls.count("https://e.com/a.png") == 2

    site.calls.clear()
    await freeze_dry(ROOT, fetch=site.fetch, dedupe_urls=True)
    assert site.calls.count("https://e.com/a.png") == 1


@pytest.mark.asyncio
async def test_caller_document_and_policy(site):
    document = BeautifulSoup('<img src="a.png"><script>x()</script>', "html.parser")

    async def to_placeholder(resource):
        return "placeholder.png"

    result = await freeze_dry(
        ROOT,
        document=document,
        fetch=site.fetch,
        resolve_url=to_placeholder,
        content_security_policy="default-src 'none'",
    )

    assert 'src="placeholder.png"' in result.html
    assert "<script" not in result.html
    assert _csp(result.html) == "default-src 'none'"
    assert site.calls == []
