import pytest
import requests

from service_finder import geocoder as geocoder_module
from service_finder.errors import GeocoderUnavailable
from service_finder.geocoder import Geocoder, TableGeocoder, ZippopotamGeocoder, create_geocoder
from service_finder.models import Coordinate


class _Resp:
    def __init__(self, status, payload=None):
        self.status_code = status
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def _stub_session(monkeypatch, geocoder, handler):
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return handler(url)

    monkeypatch.setattr(geocoder._session, "get", fake_get)
    return calls


def test_zippopotam_parses_first_place(monkeypatch):
    geo = ZippopotamGeocoder("https://api.example.com/us/")
    payload = {"post code": "19103", "places": [{"latitude": "39.9526", "longitude": "-75.1652"}]}
    calls = _stub_session(monkeypatch, geo, lambda url: _Resp(200, payload))

    assert geo.geocode_zip("19103-1234") == Coordinate(39.9526, -75.1652)
    assert calls == ["https://api.example.com/us/19103"]


def test_zippopotam_not_found_and_errors(monkeypatch):
    geo = ZippopotamGeocoder()
    _stub_session(monkeypatch, geo, lambda url: _Resp(404))
    assert geo.geocode_zip("00000") is None

    def boom(url):
        raise requests.ConnectionError("down")

    _stub_session(monkeypatch, geo, boom)
    with pytest.raises(GeocoderUnavailable):
        geo.geocode_zip("19103")

    _stub_session(monkeypatch, geo, lambda url: _Resp(503))
    with pytest.raises(GeocoderUnavailable):
        geo.geocode_zip("19103")

    _stub_session(monkeypatch, geo, lambda url: _Resp(200, {"places": [{"latitude": "x"}]}))
    assert geo.geocode_zip("19103") is None


def test_short_zip_is_not_requested(monkeypatch):
    geo = ZippopotamGeocoder()
    calls = _stub_session(monkeypatch, geo, lambda url: _Resp(200, {}))
    assert geo.geocode_zip("123") is None
    assert calls == []


class _Recorder(Geocoder):
    def __init__(self):
        self.seen = []

    def geocode_zip(self, zip_code):
        self.seen.append(zip_code)
        return Coordinate(float(zip_code[-1]), 0.0) if zip_code != "00000" else None


def test_geocode_batch_sleeps_between_batches(monkeypatch):
    sleeps = []
    monkeypatch.setattr(geocoder_module.time, "sleep", lambda s: sleeps.append(s))
    geo = _Recorder()
    zips = ["11111", "22222", "33333", "44444", "55555", "66666", "77777", "00000", "11111"]

    results = geo.geocode_batch(zips, batch_size=5, batch_delay=1.0)

    assert sorted(geo.seen) == sorted(set(zips))
    assert len(results) == 8
    assert results["00000"] is None
    assert results["77777"] == Coordinate(7.0, 0.0)
    # 8 unique zips -> 2 batches -> one pause
    assert sleeps == [1.0]


def test_geocode_batch_empty():
    assert _Recorder().geocode_batch([]) == {}


def test_geocode_batch_service_down(monkeypatch):
    geo = ZippopotamGeocoder()

    def down(url):
        raise requests.ConnectionError("down")

    _stub_session(monkeypatch, geo, down)
    with pytest.raises(GeocoderUnavailable):
        geo.geocode_batch(["19103", "19104"], batch_delay=0)


def test_geocode_batch_partial_failure_is_a_miss(monkeypatch):
    geo = ZippopotamGeocoder()
    payload = {"places": [{"latitude": "39.9526", "longitude": "-75.1652"}]}

    def handler(url):
        if url.endswith("19104"):
            raise requests.ConnectionError("reset")
        return _Resp(200, payload)

    _stub_session(monkeypatch, geo, handler)
    results = geo.geocode_batch(["19103", "19104"], batch_delay=0)
    assert results == {"19103": Coordinate(39.9526, -75.1652), "19104": None}


def test_table_geocoder():
    geo = TableGeocoder({"19103": Coordinate(1.0, 2.0)})
    assert geo.geocode_zip("19-103") == Coordinate(1.0, 2.0)
    assert geo.geocode_zip("99999") is None


def test_create_geocoder():
    geo = create_geocoder("https://api.example.com/us")
    assert isinstance(geo, ZippopotamGeocoder)
    assert geo.base_url == "https://api.example.com/us"


def test_geocoder_is_abstract():
    with pytest.raises(TypeError):
        Geocoder()
