import pytest

from tileproxy.errors import InvalidTileRequest
from tileproxy.services.validator import host_of, is_trusted, parse_int, parse_tile_key


def test_valid_coordinates():
    key = parse_tile_key({"z": "5", "x": "10", "y": "12"})
    assert (key.z, key.x, key.y) == (5, 10, 12)


def test_zoom_bounds():
    assert parse_tile_key({"z": "0", "x": "0", "y": "0"}).z == 0
    assert parse_tile_key({"z": "20", "x": "0", "y": "0"}).z == 20


def test_large_x_y_are_accepted():
    key = parse_tile_key({"z": "3", "x": "123456", "y": "654321"})
    assert key.x == 123456


@pytest.mark.parametrize(
    "params",
    [
        {"z": "25", "x": "1", "y": "1"},
        {"z": "-1", "x": "1", "y": "1"},
        {"z": "5", "x": "-3", "y": "1"},
        {"z": "5", "x": "1", "y": "-1"},
        {"z": "5", "x": "1"},
        {},
        {"z": "abc", "x": "1", "y": "1"},
        {"z": "5.0", "x": "1", "y": "1"},
        {"z": "05", "x": "1", "y": "1"},
        {"z": "", "x": "1", "y": "1"},
    ],
)
def test_rejects_invalid_coordinates(params):
    with pytest.raises(InvalidTileRequest):
        parse_tile_key(params)


def test_parse_int_accepts_sign_and_whitespace():
    assert parse_int(" 7 ") == 7
    assert parse_int("+7") == 7
    assert parse_int("0") == 0
    assert parse_int("007") is None
    assert parse_int(None) is None


def test_host_of():
    assert host_of("https://Maps.Example.com:8443/page?x=1") == "maps.example.com"
    assert host_of("not a url") is None
    assert host_of("") is None
    assert host_of(None) is None


def test_is_trusted():
    trusted = ["maps.example.com"]
    assert is_trusted("https://maps.example.com/page", trusted)
    assert not is_trusted("https://evil.example.net/", trusted)
    assert not is_trusted("garbage", trusted)


def test_coordinate_beyond_int_conversion_limit_is_invalid():
    huge = "1" * 5000
    assert parse_int(huge) is None
    with pytest.raises(InvalidTileRequest):
        parse_tile_key({"z": "5", "x": huge, "y": "1"})
