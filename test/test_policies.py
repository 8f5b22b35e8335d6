from __future__ import annotations

import pytest

from freeze_dry.models import Blob
from freeze_dry.policies import (
    SiblingFiles,
    blob_to_data_url,
    inline_data_url,
    keep_absolute,
    make_policy,
)


class StubResource:
    def __init__(self, url: str, blob: Blob):
        self.url = url
        self._blob = blob
        self.blob_calls = 0

    async def blob(self) -> Blob:
        self.blob_calls += 1
        return self._blob


def test_blob_to_data_url():
    assert blob_to_data_url(Blob(b"hi", "text/plain")) == "data:text/plain;base64,aGk="


@pytest.mark.asyncio
async def test_inline_data_url():
    res = StubResource("https://e.com/a.png", Blob(b"PNG", "image/png"))
    assert await inline_data_url(res) == "data:image/png;base64,UE5H"


@pytest.mark.asyncio
async def test_keep_absolute_does_not_download():
    res = StubResource("https://e.com/a.png", Blob(b"PNG", "image/png"))
    assert await keep_absolute(res) == "https://e.com/a.png"
    assert res.blob_calls == 0


@pytest.mark.asyncio
async def test_sibling_files_are_named_by_content():
    policy = SiblingFiles()
    a = StubResource("https://e.com/a.png", Blob(b"PNG", "image/png"))
    same = StubResource("https://e.com/copy.png", Blob(b"PNG", "image/png"))
    css = StubResource("https://e.com/s.css", Blob(b"a{}", "text/css"))

    name_a = await policy(a)
    name_same = await policy(same)
    name_css = await policy(css)

    assert name_a == name_same
    assert name_a.endswith(".png")
    assert len(name_a) == 16 + len(".png")
    assert name_css.endswith(".css")
    assert set(policy.files) == {name_a, name_css}


def test_unknown_media_type_gets_bin_extension():
    assert SiblingFiles.file_name(Blob(b"x", "application/x-unheard-of")).endswith(".bin")


def test_make_policy():
    assert make_policy("inline") is inline_data_url
    assert make_policy("absolute") is keep_absolute
    assert isinstance(make_policy("files"), SiblingFiles)
    with pytest.raises(ValueError):
        make_policy("nope")
