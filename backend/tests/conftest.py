import io
import time
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from tileproxy.services.tile_cache import TileCache
from tileproxy.services.tile_store import TileStore

UPSTREAM = "https://upstream.example.org/{z}/{x}/{y}.png"


class FakeClock:
    """Reloj controlable para los tests."""

    def __init__(self, now=None):
        self.now = time.time() if now is None else now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def upstream_session(body=b"", status_error=None, error=None):
    """requests.Session simulado que responde `body` por bloques."""
    response = MagicMock()
    response.iter_content.return_value = [body[: len(body) // 2], body[len(body) // 2 :]]
    if status_error is not None:
        response.raise_for_status.side_effect = requests.HTTPError(status_error)

    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


@pytest.fixture
def png_bytes():
    """Un PNG real de 256x256, como los que sirve un servidor de tiles."""
    buf = io.BytesIO()
    Image.new("RGB", (256, 256), color="green").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(png_bytes):
    return upstream_session(png_bytes)


@pytest.fixture
def store(tmp_path, session):
    return TileStore(root=tmp_path, url_template=UPSTREAM, operator="tests@example.com", session=session)


@pytest.fixture
def cache(store, clock):
    return TileCache(store=store, ttl=300, trusted_hosts=["maps.example.com"], clock=clock)
