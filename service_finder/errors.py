"""Exception hierarchy for the service finder."""

from enum import Enum


class FinderError(RuntimeError):
    """Base class for all service finder errors."""


class ConfigError(FinderError):
    """Raised when a configuration value is invalid."""


class LoadFailure(FinderError):
    """CSV or coordinate-table fetch/parse failure. Fatal to readiness."""


class DataNotReady(LoadFailure):
    """Raised by queries while the dataset is not (or no longer) loaded."""

    def __init__(self, message: str = "Data is still loading. Please wait a moment and try again."):
        super().__init__(message)


class ValidationError(FinderError):
    """Bad query input (malformed zip, missing filters, non-positive radius)."""


class ResolutionNotFound(FinderError):
    """Zip code absent from the coordinate table."""

    def __init__(self, zip_code: str):
        self.zip_code = zip_code
        super().__init__(f"No coordinates found for zip code {zip_code}")


class GeocoderUnavailable(FinderError):
    """Geocoding service could not be reached or answered with a server error."""


class GeolocationFailure(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"


_GEOLOCATION_MESSAGES = {
    GeolocationFailure.PERMISSION_DENIED:
        "Location access was denied. Please allow location access and try again.",
    GeolocationFailure.POSITION_UNAVAILABLE:
        "Location is unavailable. Please check your internet connection and try again.",
    GeolocationFailure.TIMEOUT:
        "Location request timed out. Please try again.",
}


class GeolocationError(FinderError):
    """One-shot location request failed. ``reason`` says why."""

    def __init__(self, reason: GeolocationFailure, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"Unable to get your location. {_GEOLOCATION_MESSAGES[reason]}")

    @property
    def user_message(self) -> str:
        return str(self)
