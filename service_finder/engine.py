"""Main FinderEngine — owns the loaded dataset and exposes the search operations."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from .cache import GeocodeCache
from .config import Config
from .coordinates import (
    build_table_from_geocoder, load_city_table, load_coordinate_table, lookup_zip,
    resolve_organizations,
)
from .errors import DataNotReady, LoadFailure, ValidationError
from .geocoder import Geocoder, create_geocoder
from .geolocation import Geolocator, LocationProvider, create_location_provider
from .ingest import load_csv_source, parse_csv
from .models import Coordinate, DataSnapshot, QuerySpec, ReadyEvent, SearchResponse, SearchResult
from .query import (
    available_service_types, available_states, expand_radius, no_results_message,
    search_by_proximity, search_with_filters, validate_filters, validate_radius, validate_zip_code,
)

logger = logging.getLogger(__name__)


class FinderEngine:
    """
    Service directory search engine.

    ``load()`` fetches the organization CSV and coordinate data, then
    publishes an immutable DataSnapshot. Queries only ever read the current
    snapshot and raise DataNotReady until one exists. A failed load leaves the
    engine not ready; calling ``load()`` again is the retry.
    """

    def __init__(self, config: Optional[Config] = None, geocoder: Optional[Geocoder] = None,
                 location_provider: Optional[LocationProvider] = None,
                 cache: Optional[GeocodeCache] = None):
        self.config = config or Config()
        self._geocoder = geocoder
        self._cache = cache
        self.geolocator = Geolocator(
            location_provider or create_location_provider(
                self.config.geolocation_enabled, self.config.geolocation_url),
            timeout=self.config.geolocation_timeout,
            maximum_age=self.config.geolocation_max_age,
        )
        self._snapshot: Optional[DataSnapshot] = None
        self._listeners: List[Callable[[ReadyEvent], None]] = []
        self.last_error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> DataSnapshot:
        if self._snapshot is None:
            raise DataNotReady()
        return self._snapshot

    def on_ready(self, callback: Callable[[ReadyEvent], None]):
        """Register a listener called with a ReadyEvent after each successful load."""
        self._listeners.append(callback)

    @property
    def geocoder(self) -> Geocoder:
        if self._geocoder is None:
            self._geocoder = create_geocoder(self.config.geocoder_url)
        return self._geocoder

    @property
    def cache(self) -> Optional[GeocodeCache]:
        if self._cache is None and self.config.cache_geocoding:
            self._cache = GeocodeCache(self.config.cache_db, self.config.cache_ttl_days)
            self._cache.clear_expired()
        return self._cache

    def load(self) -> DataSnapshot:
        """Run the full load sequence. Raises LoadFailure; the engine is then not ready."""
        cfg = self.config
        logger.info(f"Loading organizations (coordinate source: {cfg.coordinate_source})...")
        t0 = time.time()
        self._snapshot = None

        try:
            if cfg.coordinate_source == "static":
                with ThreadPoolExecutor(max_workers=2) as pool:
                    csv_future = pool.submit(load_csv_source, cfg.csv_source, cfg.fetch_timeout)
                    table_future = pool.submit(
                        load_coordinate_table, cfg.zip_coordinates_source,
                        cfg.city_coordinates_source, cfg.fetch_timeout,
                    )
                    records = parse_csv(csv_future.result(), require_zip=cfg.require_zip)
                    table = table_future.result()
            else:
                with ThreadPoolExecutor(max_workers=2) as pool:
                    csv_future = pool.submit(load_csv_source, cfg.csv_source, cfg.fetch_timeout)
                    city_future = pool.submit(load_city_table, cfg.city_coordinates_source, cfg.fetch_timeout)
                    records = parse_csv(csv_future.result(), require_zip=cfg.require_zip)
                    cities = city_future.result()
                table = build_table_from_geocoder(
                    records, self.geocoder, self.cache,
                    batch_size=cfg.geocode_batch_size,
                    batch_delay=cfg.geocode_batch_delay,
                    cities=cities,
                )
        except LoadFailure as e:
            self.last_error = e
            logger.error(f"Load failed: {e}")
            raise

        organizations = resolve_organizations(records, table)
        self._snapshot = DataSnapshot(
            records=tuple(records),
            organizations=tuple(organizations),
            table=table,
        )
        self.last_error = None
        logger.info(f"FinderEngine ready in {time.time() - t0:.1f}s — {len(records)} organizations")

        event = ReadyEvent(data_count=len(records))
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Ready listener {listener!r} failed: {e}")
        return self._snapshot

    reload = load

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _respond(self, spec: QuerySpec, results: List[SearchResult], t0: float) -> SearchResponse:
        return SearchResponse(
            spec=spec,
            results=results,
            message="" if results else no_results_message(spec),
            lookup_time_ms=int((time.time() - t0) * 1000),
        )

    def search(self, zip_code: str = "", state: str = "", service_type: str = "") -> SearchResponse:
        """Exact-match search on zip / state / service type."""
        t0 = time.time()
        snapshot = self.snapshot
        zip_code = (zip_code or "").strip()
        spec = QuerySpec(
            zip_code=zip_code,
            state=state or "",
            service_type=service_type or "",
            search_type="zip" if zip_code else "filters",
        )
        validate_filters(spec)
        results = search_with_filters(snapshot.organizations, spec.zip_code, spec.state, spec.service_type)
        return self._respond(spec, results, t0)

    def search_nearby(self, latitude: float, longitude: float, radius_miles,
                      service_type: str = "", zip_code: str = "") -> SearchResponse:
        """Proximity search around an explicit point."""
        t0 = time.time()
        snapshot = self.snapshot
        radius = validate_radius(radius_miles)
        spec = QuerySpec(
            zip_code=zip_code,
            service_type=service_type or "",
            center=Coordinate(latitude, longitude),
            radius_miles=radius,
            search_type="proximity",
        )
        results = search_by_proximity(snapshot.organizations, latitude, longitude, radius, spec.service_type)
        return self._respond(spec, results, t0)

    def search_near_zip(self, zip_code: str, radius_miles, service_type: str = "") -> SearchResponse:
        """Proximity search centered on a zip code. Raises ResolutionNotFound for unknown zips."""
        snapshot = self.snapshot
        zip_code = (zip_code or "").strip()
        if not validate_zip_code(zip_code):
            raise ValidationError("Please enter a valid zip code (e.g., 12345)")
        validate_radius(radius_miles)
        center = lookup_zip(snapshot.table, zip_code)
        return self.search_nearby(center.latitude, center.longitude, radius_miles,
                                  service_type=service_type, zip_code=zip_code)

    async def search_near_me(self, radius_miles, service_type: str = "") -> SearchResponse:
        """Proximity search around the current location. Raises GeolocationError."""
        if not self.is_ready:
            raise DataNotReady()
        validate_radius(radius_miles)
        location = await self.geolocator.get_current_location()
        return self.search_nearby(location.latitude, location.longitude, radius_miles,
                                  service_type=service_type)

    def expand_radius(self, radius_miles) -> float:
        return expand_radius(radius_miles, self.config.max_expanded_radius_miles)

    def facets(self) -> dict:
        """Filter choices derived from the loaded records."""
        records = self.snapshot.records
        return {
            "states": available_states(records),
            "service_types": available_service_types(records),
        }

    def close(self):
        if self._cache is not None:
            self._cache.close()
            self._cache = None
