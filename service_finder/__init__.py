"""Service Finder — directory search over a CSV of service organizations, by filter or proximity."""

from .engine import FinderEngine
from .models import GeocodedOrganization, OrganizationRecord, SearchResponse, SearchResult

__all__ = ["FinderEngine", "GeocodedOrganization", "OrganizationRecord", "SearchResponse", "SearchResult"]
