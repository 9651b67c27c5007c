"""Query engine: exact-match filters and proximity search over loaded data.

Everything here is pure: data in, data out. An empty result list is a valid
outcome, never an error.
"""

import re
from typing import Iterable, List, Sequence

from .distance import distance_miles
from .errors import ValidationError
from .ingest import normalize_zip
from .models import UNKNOWN, GeocodedOrganization, OrganizationRecord, QuerySpec, SearchResult

_ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def validate_zip_code(zip_code: str) -> bool:
    """12345 or 12345-6789."""
    return bool(_ZIP_PATTERN.match(zip_code or ""))


def validate_radius(radius) -> float:
    try:
        value = float(radius)
    except (TypeError, ValueError):
        raise ValidationError("Please select a valid search radius")
    if not value > 0:
        raise ValidationError("Please select a valid search radius")
    return value


def validate_filters(spec: QuerySpec):
    """Exact-match queries need at least one criterion, and a well-formed zip if given."""
    if not spec.zip_code and not spec.state and not spec.service_type:
        raise ValidationError(
            "Please enter a zip code, select a state, or choose a service type to search"
        )
    if spec.zip_code and not validate_zip_code(spec.zip_code):
        raise ValidationError("Please enter a valid zip code (e.g., 12345)")


def search_with_filters(
    organizations: Iterable[GeocodedOrganization],
    zip_code: str = "",
    state: str = "",
    service_type: str = "",
) -> List[SearchResult]:
    """
    Exact-match search. Provided filters are ANDed; blank ones are skipped.

    Zip compares digit-only forms for equality (no prefix matching).
    State and service type are case-sensitive exact matches.
    """
    wanted_zip = normalize_zip(zip_code) if zip_code else ""
    results = []
    for org in organizations:
        record = org.record
        if zip_code and normalize_zip(record.zip) != wanted_zip:
            continue
        if state and record.state != state:
            continue
        if service_type and record.service_type != service_type:
            continue
        results.append(SearchResult(org))
    return results


def search_by_proximity(
    organizations: Iterable[GeocodedOrganization],
    latitude: float,
    longitude: float,
    radius_miles,
    service_type: str = "",
) -> List[SearchResult]:
    """
    Organizations within ``radius_miles`` of a point, nearest first.

    Entries without coordinates never match. Distances are rounded to one
    decimal on the result; ties keep input order.
    """
    radius = validate_radius(radius_miles)
    hits = []
    for org in organizations:
        if service_type and org.record.service_type != service_type:
            continue
        if not org.has_coordinates:
            continue
        distance = distance_miles(latitude, longitude, org.latitude, org.longitude)
        if distance <= radius:
            hits.append(SearchResult(org, distance=round(distance, 1)))
    hits.sort(key=lambda r: r.distance)
    return hits


def expand_radius(radius_miles: float, ceiling: float = 50) -> float:
    """Double the radius for a retry, capped at ``ceiling``."""
    return min(validate_radius(radius_miles) * 2, ceiling)


def _fmt_radius(radius) -> str:
    return f"{float(radius):g}"


def no_results_message(spec: QuerySpec) -> str:
    """Human summary of an empty search, built from the active filters."""
    message = "No services found"
    filters = []

    if spec.service_type:
        filters.append(f'"{spec.service_type}"')

    if spec.search_type == "proximity":
        if spec.radius_miles:
            filters.append(f"within {_fmt_radius(spec.radius_miles)} miles")
        if spec.zip_code:
            filters.append(f"of zip code {spec.zip_code}")
        else:
            filters.append("near your location")
    elif spec.zip_code:
        filters.append(f"in zip code {spec.zip_code}")
    elif spec.state:
        filters.append(f"in {spec.state}")

    if spec.state and spec.zip_code:
        filters.append(f"in {spec.state}")

    if filters:
        message += " " + " ".join(filters)
    return message + ". Try expanding your search or checking nearby areas."


def result_count_label(count: int) -> str:
    return f"{count} service{'' if count == 1 else 's'} found"


def available_states(records: Sequence[OrganizationRecord]) -> List[str]:
    """Distinct 2-letter state codes, sorted."""
    return sorted({r.state for r in records if r.state and len(r.state) == 2})


def available_service_types(records: Sequence[OrganizationRecord]) -> List[str]:
    """Distinct service types, sorted, without the "Unknown" placeholder."""
    return sorted({r.service_type for r in records if r.service_type and r.service_type != UNKNOWN})
