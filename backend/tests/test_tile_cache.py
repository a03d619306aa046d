import os

import pytest
from conftest import UPSTREAM, upstream_session

from tileproxy.errors import AccessDenied, TileProxyError, TileUnavailable, UpstreamFetchError
from tileproxy.models.schemas import TileKey
from tileproxy.services.tile_cache import TileCache, http_date
from tileproxy.services.tile_store import TileStore

KEY = TileKey(z=5, x=10, y=12)
REFERER = "https://maps.example.com/page"


def put_tile(store, data, mtime):
    path = store.path_for(KEY)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    os.utime(path, (mtime, mtime))
    return path


def test_miss_fetches_once_and_serves(cache, store, session, clock, png_bytes, tmp_path):
    tile = cache.serve(KEY, referer=REFERER)

    assert session.get.call_count == 1
    assert tile.status == 200
    assert tile.path == tmp_path / "5" / "10" / "12.png"
    assert tile.path.read_bytes() == png_bytes
    assert tile.headers["Cache-Control"] == "public, max-age=300"
    assert tile.headers["Content-Type"] == "image/png"
    assert tile.headers["Last-Modified"] == http_date(clock.now)
    assert tile.headers["Expires"] == http_date(clock.now + 300)


def test_fresh_tile_is_served_without_fetch(cache, store, session, clock):
    mtime = clock.now - 100
    path = put_tile(store, b"cached tile", mtime)

    tile = cache.serve(KEY)

    session.get.assert_not_called()
    assert tile.path.read_bytes() == b"cached tile"
    assert tile.headers["Last-Modified"] == http_date(path.stat().st_mtime)


def test_expired_tile_is_refetched(cache, store, session, clock, png_bytes):
    put_tile(store, b"stale tile", clock.now - 301)

    tile = cache.serve(KEY)

    assert session.get.call_count == 1
    assert tile.path.read_bytes() == png_bytes
    assert tile.headers["Last-Modified"] == http_date(clock.now)


def test_failed_fetch_propagates_and_leaves_no_file(tmp_path, clock):
    store = TileStore(root=tmp_path, url_template=UPSTREAM, session=upstream_session(status_error="500"))
    cache = TileCache(store=store, ttl=300, trusted_hosts=["maps.example.com"], clock=clock)

    with pytest.raises(UpstreamFetchError) as excinfo:
        cache.serve(KEY, origin="https://maps.example.com")
    assert not store.exists(KEY)
    assert excinfo.value.headers == {"Access-Control-Allow-Origin": "https://maps.example.com"}


def test_missing_file_after_fetch_is_internal_error(cache, store):
    store.fetch = lambda key: store.path_for(key)

    with pytest.raises(TileUnavailable):
        cache.serve(KEY)


def test_trusted_origin_is_echoed(cache):
    tile = cache.serve(KEY, origin="https://maps.example.com")
    assert tile.headers["Access-Control-Allow-Origin"] == "https://maps.example.com"


def test_untrusted_origin_is_omitted_but_served(cache):
    tile = cache.serve(KEY, origin="https://evil.example.net")
    assert "Access-Control-Allow-Origin" not in tile.headers
    assert tile.status == 200


def test_untrusted_referer_is_denied(cache, session):
    with pytest.raises(AccessDenied):
        cache.serve(KEY, referer="https://evil.example.net/page")
    session.get.assert_not_called()


def test_denied_response_keeps_cors_header(cache):
    with pytest.raises(AccessDenied) as excinfo:
        cache.serve(KEY, origin="https://maps.example.com", referer="https://evil.example.net/")
    assert excinfo.value.headers["Access-Control-Allow-Origin"] == "https://maps.example.com"


def test_no_referer_is_allowed(cache):
    assert cache.serve(KEY).status == 200


def test_path_too_long_for_filesystem_is_internal_error(cache, session):
    key = TileKey(z=5, x=int("1" * 300), y=1)

    with pytest.raises(TileProxyError) as excinfo:
        cache.serve(key, origin="https://maps.example.com")

    assert excinfo.value.status_code == 500
    assert excinfo.value.headers["Access-Control-Allow-Origin"] == "https://maps.example.com"
    session.get.assert_not_called()
