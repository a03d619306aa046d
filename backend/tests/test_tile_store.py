import pytest
import requests
from conftest import UPSTREAM, upstream_session

from tileproxy.errors import UpstreamFetchError
from tileproxy.models.schemas import TileKey
from tileproxy.services.tile_store import TileStore

KEY = TileKey(z=5, x=10, y=12)


def test_path_layout(store, tmp_path):
    assert store.path_for(KEY) == tmp_path / "5" / "10" / "12.png"


def test_source_url():
    store = TileStore(root="tiles", url_template="https://a.tile/{z}/{x}/{y}.png?k={z}", session=upstream_session())
    assert store.source_url(KEY) == "https://a.tile/5/10/12.png?k=5"


def test_fetch_writes_tile(store, session, png_bytes):
    path = store.fetch(KEY)

    assert path.read_bytes() == png_bytes
    assert store.exists(KEY)
    session.get.assert_called_once_with(
        UPSTREAM.format(z=5, x=10, y=12),
        headers={"User-Agent": "Tile Proxy, Operator: tests@example.com"},
        timeout=30,
        stream=True,
    )


def test_fetch_overwrites_existing_tile(store, png_bytes):
    path = store.path_for(KEY)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"old tile")

    store.fetch(KEY)
    assert path.read_bytes() == png_bytes


def test_http_error_leaves_no_file(tmp_path, png_bytes):
    store = TileStore(root=tmp_path, url_template=UPSTREAM, session=upstream_session(png_bytes, status_error="404"))

    with pytest.raises(UpstreamFetchError):
        store.fetch(KEY)
    assert not store.path_for(KEY).exists()


def test_transport_error_leaves_no_file(tmp_path):
    session = upstream_session(error=requests.ConnectionError("connection refused"))
    store = TileStore(root=tmp_path, url_template=UPSTREAM, session=session)

    with pytest.raises(UpstreamFetchError):
        store.fetch(KEY)
    assert not store.path_for(KEY).exists()


def test_error_mid_stream_removes_partial_file(tmp_path):
    session = upstream_session(b"partial")
    response = session.get.return_value

    def broken_stream(chunk_size):
        yield b"\x89PNG"
        raise requests.exceptions.ChunkedEncodingError("connection reset")

    response.iter_content.side_effect = broken_stream
    store = TileStore(root=tmp_path, url_template=UPSTREAM, session=session)

    with pytest.raises(UpstreamFetchError):
        store.fetch(KEY)
    assert not store.path_for(KEY).exists()
    response.close.assert_called_once()


def test_failed_refetch_removes_stale_tile(tmp_path):
    store = TileStore(root=tmp_path, url_template=UPSTREAM, session=upstream_session(status_error="503"))
    path = store.path_for(KEY)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"stale tile")

    with pytest.raises(UpstreamFetchError):
        store.fetch(KEY)
    assert not path.exists()
