"""Data models for the service finder."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

UNKNOWN = "Unknown"

SOURCE_ZIP = "zip"
SOURCE_CITY = "city"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class OrganizationRecord:
    name: str = UNKNOWN
    service_type: str = UNKNOWN
    zip: str = ""
    city: str = UNKNOWN
    state: str = UNKNOWN
    county: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "service_type": self.service_type,
            "zip": self.zip,
            "city": self.city,
            "state": self.state,
            "county": self.county,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
        }


@dataclass(frozen=True)
class GeocodedOrganization:
    record: OrganizationRecord
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    coordinate_source: str = SOURCE_NONE

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data.update({
            "latitude": self.latitude,
            "longitude": self.longitude,
            "coordinate_source": self.coordinate_source,
        })
        return data


@dataclass(frozen=True)
class CoordinateTable:
    """Zip -> coordinate and "City, ST" -> coordinate reference data."""

    zips: Dict[str, Coordinate] = field(default_factory=dict)
    cities: Dict[str, Coordinate] = field(default_factory=dict)

    @property
    def has_cities(self) -> bool:
        return bool(self.cities)


@dataclass(frozen=True)
class QuerySpec:
    zip_code: str = ""
    state: str = ""
    service_type: str = ""
    center: Optional[Coordinate] = None
    radius_miles: Optional[float] = None
    search_type: str = "filters"  # "zip", "filters", or "proximity"


@dataclass(frozen=True)
class SearchResult:
    """One query hit. ``distance`` is only set for proximity queries."""

    organization: GeocodedOrganization
    distance: Optional[float] = None

    @property
    def record(self) -> OrganizationRecord:
        return self.organization.record

    def to_dict(self) -> dict:
        data = self.organization.to_dict()
        if self.distance is not None:
            data["distance"] = self.distance
        return data


@dataclass
class SearchResponse:
    spec: QuerySpec
    results: List[SearchResult] = field(default_factory=list)
    message: str = ""
    lookup_time_ms: int = 0

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "search_type": self.spec.search_type,
            "filters": {
                "zip_code": self.spec.zip_code,
                "state": self.spec.state,
                "service_type": self.spec.service_type,
                "radius_miles": self.spec.radius_miles,
            },
            "count": self.count,
            "message": self.message,
            "results": [r.to_dict() for r in self.results],
            "lookup_time_ms": self.lookup_time_ms,
        }


@dataclass(frozen=True)
class DataSnapshot:
    """Everything a query may read. Replaced wholesale on reload."""

    records: Tuple[OrganizationRecord, ...]
    organizations: Tuple[GeocodedOrganization, ...]
    table: CoordinateTable
    loaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def record_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ReadyEvent:
    data_count: int
    type: str = "search-system-ready"
    message: str = "Search system is ready"

    def to_dict(self) -> dict:
        return {"type": self.type, "message": self.message, "dataCount": self.data_count}
