from pathlib import Path

import pytest

from service_finder.config import Config
from service_finder.errors import ConfigError


def test_defaults():
    config = Config()
    assert config.require_zip is False
    assert config.coordinate_source == "static"
    assert config.cache_geocoding is True
    assert config.geocode_batch_size == 5
    assert config.geocode_batch_delay == 1.0
    assert config.geolocation_timeout == 15.0
    assert config.geolocation_max_age == 300.0
    assert isinstance(config.cache_db, Path)


def test_from_env_reads_values(monkeypatch, tmp_path):
    monkeypatch.setenv("FINDER_CSV_URL", "https://example.com/orgs.csv")
    monkeypatch.setenv("FINDER_REQUIRE_ZIP", "true")
    monkeypatch.setenv("FINDER_COORDINATE_SOURCE", "geocoding")
    monkeypatch.setenv("FINDER_CACHE_GEOCODING", "no")
    monkeypatch.setenv("FINDER_GEOCODE_BATCH_SIZE", "3")
    monkeypatch.setenv("FINDER_CACHE_DB", str(tmp_path / "c.db"))

    config = Config.from_env()

    assert config.csv_source == "https://example.com/orgs.csv"
    assert config.require_zip is True
    assert config.coordinate_source == "geocoding"
    assert config.cache_geocoding is False
    assert config.geocode_batch_size == 3
    assert config.cache_db == tmp_path / "c.db"


def test_from_env_overrides_win(monkeypatch):
    monkeypatch.setenv("FINDER_REQUIRE_ZIP", "1")
    assert Config.from_env(require_zip=False).require_zip is False


def test_invalid_values_raise(monkeypatch):
    with pytest.raises(ConfigError):
        Config(coordinate_source="carrier-pigeon")
    with pytest.raises(ConfigError):
        Config(geocode_batch_size=0)
    monkeypatch.setenv("FINDER_FETCH_TIMEOUT", "soon")
    with pytest.raises(ConfigError):
        Config.from_env()
