"""Configuration for the service finder."""

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

_ROOT = Path(__file__).parent.parent

COORDINATE_SOURCES = ("static", "geocoding")


@dataclass
class Config:
    # Data sources (URL or local path)
    csv_source: str = "https://raw.githubusercontent.com/jwalith/Test_github_pages/main/01_master_all_states.csv"
    zip_coordinates_source: str = "https://raw.githubusercontent.com/jwalith/Test_github_pages/main/zip_coordinates.json"
    city_coordinates_source: str = "https://raw.githubusercontent.com/jwalith/Test_github_pages/main/city_coordinates.json"
    fetch_timeout: int = 30

    # Ingestion: drop rows without a zip code
    require_zip: bool = False

    # Coordinates: "static" (JSON tables) or "geocoding" (postal-code API per zip)
    coordinate_source: str = "static"
    geocoder_url: str = "https://api.zippopotam.us/us"
    geocode_batch_size: int = 5
    geocode_batch_delay: float = 1.0

    # Geocode cache
    cache_geocoding: bool = True
    cache_db: Path = _ROOT / "data" / "geocode_cache.db"
    cache_ttl_days: int = 90

    # Geolocation
    geolocation_enabled: bool = True
    geolocation_url: str = "https://ipapi.co/json/"
    geolocation_timeout: float = 15.0
    geolocation_max_age: float = 300.0

    # Radius handling
    default_radius_miles: float = 10.0
    max_expanded_radius_miles: float = 50.0

    def __post_init__(self):
        if self.coordinate_source not in COORDINATE_SOURCES:
            raise ConfigError(
                f"coordinate_source must be one of {COORDINATE_SOURCES}, got '{self.coordinate_source}'"
            )
        if self.geocode_batch_size < 1:
            raise ConfigError("geocode_batch_size must be at least 1")
        self.cache_db = Path(self.cache_db)

    @classmethod
    def from_env(cls, **overrides) -> "Config":
        """Build a Config from FINDER_* environment variables. Keyword overrides win."""
        values = {}
        env = os.environ
        for key, name in (
            ("csv_source", "FINDER_CSV_URL"),
            ("zip_coordinates_source", "FINDER_ZIP_COORDINATES_URL"),
            ("city_coordinates_source", "FINDER_CITY_COORDINATES_URL"),
            ("coordinate_source", "FINDER_COORDINATE_SOURCE"),
            ("geocoder_url", "FINDER_GEOCODER_URL"),
            ("geolocation_url", "FINDER_GEOLOCATION_URL"),
            ("cache_db", "FINDER_CACHE_DB"),
        ):
            if env.get(name):
                values[key] = env[name]
        for key, name in (
            ("require_zip", "FINDER_REQUIRE_ZIP"),
            ("cache_geocoding", "FINDER_CACHE_GEOCODING"),
            ("geolocation_enabled", "FINDER_GEOLOCATION_ENABLED"),
        ):
            if env.get(name):
                values[key] = env[name].lower() in ("1", "true", "yes")
        for key, name, cast in (
            ("fetch_timeout", "FINDER_FETCH_TIMEOUT", int),
            ("cache_ttl_days", "FINDER_CACHE_TTL_DAYS", int),
            ("geocode_batch_size", "FINDER_GEOCODE_BATCH_SIZE", int),
            ("geocode_batch_delay", "FINDER_GEOCODE_BATCH_DELAY", float),
            ("default_radius_miles", "FINDER_DEFAULT_RADIUS", float),
        ):
            if env.get(name):
                try:
                    values[key] = cast(env[name])
                except ValueError:
                    raise ConfigError(f"{name} must be a number, got '{env[name]}'")
        values.update(overrides)
        return cls(**values)
