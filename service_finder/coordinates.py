"""Coordinate tables and per-organization coordinate resolution.

Resolution order for each record:
    zip table (exact digits) -> city table ("City, ST") -> none

The zip table is mandatory: if it cannot be loaded the whole load fails, so a
proximity search never runs against silently missing coordinates. The city
table is best effort.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import requests

from .cache import GeocodeCache
from .errors import GeocoderUnavailable, LoadFailure, ResolutionNotFound
from .geocoder import Geocoder
from .ingest import normalize_zip
from .models import (
    SOURCE_CITY, SOURCE_NONE, SOURCE_ZIP,
    Coordinate, CoordinateTable, GeocodedOrganization, OrganizationRecord,
)

logger = logging.getLogger(__name__)


def load_json_source(source: str, timeout: int = 30) -> dict:
    """Fetch and decode a JSON document from a URL or local path."""
    if source.startswith(("http://", "https://")):
        resp = requests.get(source, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    with open(Path(source), encoding="utf-8") as f:
        return json.load(f)


def _parse_entries(entries: dict, label: str) -> Dict[str, Coordinate]:
    parsed = {}
    skipped = 0
    for key, value in entries.items():
        try:
            parsed[key] = Coordinate(
                latitude=float(value["latitude"]),
                longitude=float(value["longitude"]),
            )
        except (KeyError, TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.warning(f"{label}: skipped {skipped} entries without usable latitude/longitude")
    return parsed


def parse_zip_table(data: dict) -> Dict[str, Coordinate]:
    """``{"coordinates": {zip: {latitude, longitude}}}`` -> {zip: Coordinate}."""
    if not isinstance(data, dict) or not isinstance(data.get("coordinates"), dict):
        raise LoadFailure("Zip coordinate file is missing the 'coordinates' mapping")
    return {normalize_zip(k): v for k, v in _parse_entries(data["coordinates"], "Zip coordinates").items()}


def parse_city_table(data: dict) -> Dict[str, Coordinate]:
    """``{"city_coordinates": {"City, ST": {latitude, longitude}}}`` -> {key: Coordinate}."""
    entries = data.get("city_coordinates") if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        logger.warning("City coordinate file has no 'city_coordinates' mapping; ignoring it")
        return {}
    return _parse_entries(entries, "City coordinates")


def load_zip_table(source: str, timeout: int) -> Dict[str, Coordinate]:
    try:
        data = load_json_source(source, timeout=timeout)
    except (requests.RequestException, OSError, ValueError) as e:
        logger.error(f"Error loading zip coordinates from {source}: {e}")
        raise LoadFailure(f"Error loading coordinates: {e}") from e
    return parse_zip_table(data)


def load_city_table(source: Optional[str], timeout: int) -> Dict[str, Coordinate]:
    if not source:
        return {}
    try:
        data = load_json_source(source, timeout=timeout)
    except (requests.RequestException, OSError, ValueError) as e:
        logger.info(f"City coordinates not available ({e}) - will only use zip coordinates")
        return {}
    return parse_city_table(data)


def load_coordinate_table(zip_source: str, city_source: Optional[str] = None,
                          timeout: int = 30) -> CoordinateTable:
    """Load the zip table (required) and the city table (optional) concurrently."""
    with ThreadPoolExecutor(max_workers=2) as pool:
        zip_future = pool.submit(load_zip_table, zip_source, timeout)
        city_future = pool.submit(load_city_table, city_source, timeout)
        zips = zip_future.result()
        cities = city_future.result()
    logger.info(f"Coordinate tables: {len(zips)} zips, {len(cities)} cities")
    return CoordinateTable(zips=zips, cities=cities)


def city_key(city: str, state: str) -> str:
    return f"{city}, {state}"


def resolve_organization(record: OrganizationRecord, table: CoordinateTable) -> GeocodedOrganization:
    zip_code = normalize_zip(record.zip)
    coord = table.zips.get(zip_code) if zip_code else None
    if coord is not None:
        return GeocodedOrganization(record, coord.latitude, coord.longitude, SOURCE_ZIP)

    if table.has_cities and record.city and record.state:
        coord = table.cities.get(city_key(record.city, record.state))
        if coord is not None:
            return GeocodedOrganization(record, coord.latitude, coord.longitude, SOURCE_CITY)

    return GeocodedOrganization(record)


def resolve_organizations(records: Iterable[OrganizationRecord],
                          table: CoordinateTable) -> List[GeocodedOrganization]:
    """Attach coordinates to every record, preserving order."""
    resolved = [resolve_organization(r, table) for r in records]
    counts = {SOURCE_ZIP: 0, SOURCE_CITY: 0, SOURCE_NONE: 0}
    for org in resolved:
        counts[org.coordinate_source] += 1
    logger.info(
        f"Coordinates loaded: {counts[SOURCE_ZIP]} zip-based, "
        f"{counts[SOURCE_CITY]} city-based, {counts[SOURCE_NONE]} no coordinates"
    )
    return resolved


def lookup_zip(table: CoordinateTable, zip_code: str) -> Coordinate:
    """Coordinate for a single zip. Raises ResolutionNotFound on miss."""
    key = normalize_zip(zip_code)
    coord = table.zips.get(key) if key else None
    if coord is None:
        raise ResolutionNotFound(zip_code)
    return coord


def build_table_from_geocoder(
    records: Iterable[OrganizationRecord],
    geocoder: Geocoder,
    cache: Optional[GeocodeCache] = None,
    batch_size: int = 5,
    batch_delay: float = 1.0,
    cities: Optional[Dict[str, Coordinate]] = None,
) -> CoordinateTable:
    """
    Build a zip table by geocoding every distinct record zip.

    Zips already in the cache are not re-fetched; fresh hits are written back.
    Zips the geocoder cannot resolve are simply absent from the table. A
    geocoder that fails every request is a LoadFailure, since the zip table
    would otherwise come up empty.
    """
    wanted = list(dict.fromkeys(normalize_zip(r.zip) for r in records if normalize_zip(r.zip)))
    zips: Dict[str, Coordinate] = {}

    if cache is not None:
        zips.update(cache.get_many(wanted))
        logger.info(f"Geocode cache: {len(zips)}/{len(wanted)} zips already resolved")

    missing = [z for z in wanted if z not in zips]
    if missing:
        try:
            fetched = geocoder.geocode_batch(missing, batch_size=batch_size, batch_delay=batch_delay)
        except GeocoderUnavailable as e:
            logger.error(f"Geocoding service unavailable: {e}")
            raise LoadFailure(f"Could not load zip code coordinates: {e}") from e
        for zip_code, coord in fetched.items():
            if coord is None:
                continue
            zips[zip_code] = coord
            if cache is not None:
                cache.put(zip_code, coord)

    return CoordinateTable(zips=zips, cities=dict(cities or {}))
