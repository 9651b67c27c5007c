"""One-shot "where am I" lookups with a hard timeout and a short-lived position cache.

Usage:
    locator = Geolocator(IPLocationProvider(), timeout=15, maximum_age=300)
    coord = await locator.get_current_location()
    # Raises GeolocationError(reason=...) on denial, unavailability, or timeout.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests

from .errors import GeolocationError, GeolocationFailure
from .models import Coordinate

logger = logging.getLogger(__name__)


class LocationProvider(ABC):
    @abstractmethod
    async def current_position(self) -> Coordinate:
        """Return the current position or raise GeolocationError."""
        ...


class FixedLocationProvider(LocationProvider):
    """Always answers with the same coordinate (e.g. from --lat/--lon)."""

    def __init__(self, latitude: float, longitude: float):
        self.coordinate = Coordinate(latitude, longitude)

    async def current_position(self) -> Coordinate:
        return self.coordinate


class DisabledLocationProvider(LocationProvider):
    """Location access switched off by configuration."""

    async def current_position(self) -> Coordinate:
        raise GeolocationError(GeolocationFailure.PERMISSION_DENIED, "geolocation disabled")


class IPLocationProvider(LocationProvider):
    """Approximate position from the caller's public IP (ipapi.co style JSON)."""

    def __init__(self, url: str = "https://ipapi.co/json/", timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def _fetch(self) -> Coordinate:
        try:
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.Timeout as e:
            raise GeolocationError(GeolocationFailure.TIMEOUT, str(e)) from e
        except (requests.RequestException, ValueError) as e:
            raise GeolocationError(GeolocationFailure.POSITION_UNAVAILABLE, str(e)) from e

        if data.get("error"):
            raise GeolocationError(GeolocationFailure.POSITION_UNAVAILABLE, str(data.get("reason", "")))
        try:
            return Coordinate(float(data["latitude"]), float(data["longitude"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeolocationError(GeolocationFailure.POSITION_UNAVAILABLE, f"bad response: {e}") from e

    async def current_position(self) -> Coordinate:
        return await asyncio.to_thread(self._fetch)


class Geolocator:
    """Wraps a provider with a timeout and a maximum position age."""

    def __init__(self, provider: LocationProvider, timeout: float = 15.0, maximum_age: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        self.provider = provider
        self.timeout = timeout
        self.maximum_age = maximum_age
        self._clock = clock
        self._cached: Optional[Coordinate] = None
        self._cached_at = 0.0

    async def get_current_location(self) -> Coordinate:
        if self._cached is not None and self._clock() - self._cached_at <= self.maximum_age:
            return self._cached

        try:
            coord = await asyncio.wait_for(self.provider.current_position(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Location request timed out after {self.timeout}s")
            raise GeolocationError(GeolocationFailure.TIMEOUT) from e
        except GeolocationError as e:
            logger.warning(f"Location request failed: {e.reason.value} {e.detail}")
            raise

        self._cached = coord
        self._cached_at = self._clock()
        return coord


async def get_current_location(provider: LocationProvider, timeout: float = 15.0) -> Coordinate:
    """Single uncached location request."""
    return await Geolocator(provider, timeout=timeout, maximum_age=0).get_current_location()


def create_location_provider(enabled: bool = True, url: str = "https://ipapi.co/json/") -> LocationProvider:
    if not enabled:
        return DisabledLocationProvider()
    return IPLocationProvider(url)
