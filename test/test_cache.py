import os
import pathlib

from freeze_dry.cache import CacheConfig, FileCache
from freeze_dry.models import FetchResponse


def _response(url: str, status: int = 200, content: bytes = b"<html><body>ok</body></html>") -> FetchResponse:
    return FetchResponse(
        url=url,
        status=status,
        content=content,
        headers={"Content-Type": "Text/HTML; Charset=UTF-8", "X-RateLimit": "10"},
        encoding="utf-8",
    )


def test_set_and_get_response_lowercases_headers_and_content_type(tmp_path):
    cfg = CacheConfig(
        enabled=True,
        directory=str(tmp_path / "fd_cache"),
        expire_seconds=30,
        store_errors=False,
    )
    fc = FileCache(cfg, app_name="freeze_dry_test")

    url = "https://example.org/page"
    fc.set_response(url, _response(url))

    got = fc.get(url)
    assert got is not None
    assert got["final_url"] == url
    assert got["status"] == 200
    # headers keys lowercased
    assert "content-type" in got["headers"]
    assert "x-ratelimit" in got["headers"]
    assert got["content_type"] == "text/html; charset=utf-8"
    assert b"ok" in got["content"]

    again = fc.get_response(url)
    assert again is not None
    assert again.content == _response(url).content
    assert again.media_type == "text/html"
    assert again.encoding == "utf-8"


def test_redirected_response_keeps_final_url(tmp_path):
    fc = FileCache(CacheConfig(directory=str(tmp_path / "fd_cache")))
    fc.set_response("https://example.org/old", _response("https://example.org/new"))
    assert fc.get_response("https://example.org/old").url == "https://example.org/new"


def test_binary_content_survives(tmp_path):
    fc = FileCache(CacheConfig(directory=str(tmp_path / "fd_cache")))
    data = bytes(range(256))
    fc.set_response("https://example.org/blob", _response("https://example.org/blob", content=data))
    assert fc.get_response("https://example.org/blob").content == data


def test_not_caching_errors_by_default(tmp_path):
    cfg = CacheConfig(
        enabled=True,
        directory=str(tmp_path / "fd_cache"),
        expire_seconds=30,
        store_errors=False,
    )
    fc = FileCache(cfg)

    url = "https://example.org/bad"
    # Should be ignored because status != 2xx and store_errors = False
    fc.set_response(url, _response(url, status=404, content=b"not found"))
    assert fc.get(url) is None
    assert fc.get_response(url) is None


def test_caching_errors_when_enabled(tmp_path):
    cfg = CacheConfig(
        enabled=True,
        directory=str(tmp_path / "fd_cache"),
        expire_seconds=30,
        store_errors=True,  # now we keep non-2xx
    )
    fc = FileCache(cfg)

    url = "https://example.org/bad"
    fc.set_response(url, _response(url, status=500, content=b"server down"))
    got = fc.get(url)
    assert got is not None
    assert got["status"] == 500
    assert got["content"] == b"server down"


def test_stats_and_clear(tmp_path):
    fc = FileCache(CacheConfig(directory=str(tmp_path / "fd_cache")))
    fc.set_response("https://example.org/a", _response("https://example.org/a"))
    fc.set_response("https://example.org/b", _response("https://example.org/b"))

    st = fc.stats()
    assert st["items"] == 2
    assert st["bytes"] > 0
    assert st["directory"] == os.path.abspath(str(tmp_path / "fd_cache"))

    fc.clear_all()
    assert fc.stats()["items"] == 0


def test_os_default_directory_uses_platformdirs(tmp_path, monkeypatch):
    # Monkeypatch the imported symbol used in cache.py
    from freeze_dry import cache as cache_mod

    target_dir = tmp_path / "os_default_here"

    def fake_user_cache_dir(app_name: str, appauthor: bool = False):
        # mirror platformdirs signature
        return str(target_dir)

    monkeypatch.setattr(cache_mod, "_user_cache_dir", fake_user_cache_dir, raising=True)

    cfg = CacheConfig(
        enabled=True,
        directory="os-default",
        expire_seconds=30,
        store_errors=False,
    )
    fc = FileCache(cfg, app_name="freeze_dry_test")
    fc.create_cache_object()

    cache_dir = pathlib.Path(fc._cache.directory)  # type: ignore[union-attr]
    assert cache_dir == target_dir


def test_create_cache_object_idempotent(tmp_path):
    cfg = CacheConfig(
        enabled=True,
        directory=str(tmp_path / "fd_cache"),
        expire_seconds=30,
        store_errors=False,
    )
    fc = FileCache(cfg)
    first_dir = str(fc._cache.directory)  # type: ignore[union-attr]
    # Call twice; should not recreate or change directory
    fc.create_cache_object()
    second_dir = str(fc._cache.directory)  # type: ignore[union-attr]
    assert first_dir == second_dir
    assert os.path.isdir(first_dir)


def test_disabled_cache_is_inert():
    cfg = CacheConfig(
        enabled=False,
        directory=".should_not_be_used",
        expire_seconds=30,
        store_errors=False,
    )
    fc = FileCache(cfg)
    assert not fc.enabled
    assert fc.directory is None
    assert fc.get("https://example.org/") is None
    fc.set_response("https://example.org/", _response("https://example.org/"))
    assert fc.stats() == {"items": 0, "bytes": 0, "directory": ""}
    assert not os.path.exists(".should_not_be_used")
