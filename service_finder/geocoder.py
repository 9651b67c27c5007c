"""Postal-code geocoding — pluggable: Zippopotam.us (free) or a fixed table."""

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

import requests

from .errors import GeocoderUnavailable
from .ingest import normalize_zip
from .models import Coordinate

logger = logging.getLogger(__name__)


class Geocoder(ABC):
    @abstractmethod
    def geocode_zip(self, zip_code: str) -> Optional[Coordinate]:
        """
        Resolve a 5-digit US zip code to a coordinate, or None on miss.

        Raises GeocoderUnavailable when the service itself cannot answer.
        """
        ...

    def geocode_batch(
        self, zip_codes: Iterable[str], batch_size: int = 5, batch_delay: float = 1.0
    ) -> Dict[str, Optional[Coordinate]]:
        """
        Geocode many zips in fixed-size concurrent batches.

        Each batch runs up to ``batch_size`` requests at once, then sleeps
        ``batch_delay`` seconds before the next batch (third-party rate limit).

        A zip whose request fails is reported as None like a miss. If every
        request fails, the service is treated as down.

        Returns:
            dict mapping zip -> Coordinate or None if no match

        Raises:
            GeocoderUnavailable: no request in the whole run got an answer
        """
        pending: List[str] = list(dict.fromkeys(z for z in zip_codes if z))
        results: Dict[str, Optional[Coordinate]] = {}
        total = len(pending)
        failed = 0

        def attempt(zip_code: str):
            try:
                return self.geocode_zip(zip_code), False
            except GeocoderUnavailable:
                return None, True

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for start in range(0, total, batch_size):
                chunk = pending[start:start + batch_size]
                for zip_code, (coord, errored) in zip(chunk, pool.map(attempt, chunk)):
                    results[zip_code] = coord
                    failed += errored
                logger.debug(f"Geocoded {start + len(chunk)}/{total} zips")
                if start + batch_size < total and batch_delay > 0:
                    time.sleep(batch_delay)

        if total and failed == total:
            raise GeocoderUnavailable(f"All {total} geocode requests failed")
        matched = sum(1 for v in results.values() if v is not None)
        logger.info(f"Batch geocoding complete: {matched}/{total} matched, {failed} failed")
        return results


class ZippopotamGeocoder(Geocoder):
    """Free postal-code API, no key needed. GET {base}/{zip}."""

    def __init__(self, base_url: str = "https://api.zippopotam.us/us", timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def geocode_zip(self, zip_code: str) -> Optional[Coordinate]:
        zip5 = normalize_zip(zip_code)[:5]
        if len(zip5) != 5:
            return None
        try:
            t0 = time.time()
            resp = self._session.get(f"{self.base_url}/{zip5}", timeout=self.timeout)
            elapsed_ms = int((time.time() - t0) * 1000)
            if resp.status_code == 404:
                logger.debug(f"Zip geocoder: no match for '{zip5}' ({elapsed_ms}ms)")
                return None
            resp.raise_for_status()
            data = resp.json()

            places = data.get("places", [])
            if not places:
                return None
            best = places[0]
            result = Coordinate(
                latitude=float(best["latitude"]),
                longitude=float(best["longitude"]),
            )
            logger.debug(f"Zip geocoder: {zip5} -> ({result.latitude}, {result.longitude}) ({elapsed_ms}ms)")
            return result

        except requests.RequestException as e:
            logger.error(f"Zip geocoder error for '{zip5}': {e}")
            raise GeocoderUnavailable(f"Zip geocoder request failed for {zip5}: {e}") from e
        except (KeyError, ValueError, IndexError) as e:
            logger.error(f"Zip geocoder parse error for '{zip5}': {e}")
            return None


class TableGeocoder(Geocoder):
    """Answers from an in-memory zip -> coordinate mapping. Useful offline."""

    def __init__(self, zips: Dict[str, Coordinate]):
        self.zips = zips

    def geocode_zip(self, zip_code: str) -> Optional[Coordinate]:
        return self.zips.get(normalize_zip(zip_code))


def create_geocoder(geocoder_url: str = "https://api.zippopotam.us/us", timeout: int = 10) -> Geocoder:
    """Factory function for the postal-code geocoder used by the geocoding source."""
    return ZippopotamGeocoder(geocoder_url, timeout=timeout)
