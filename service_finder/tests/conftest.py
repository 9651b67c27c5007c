import json
import math

import pytest

from service_finder.config import Config
from service_finder.models import Coordinate, CoordinateTable, GeocodedOrganization, OrganizationRecord

CENTER = (40.0, -75.0)


def lat_offset(miles: float) -> float:
    """Latitude north of CENTER that is exactly ``miles`` away along the meridian."""
    return CENTER[0] + math.degrees(miles / 3959)


SAMPLE_CSV = "\n".join([
    "Name,Housing_Type,Zip,City,State,Phone,Email,Address",
    "Harbor House,Shelter,19103,Philadelphia,PA,215-555-0100,info@harbor.org,1 Main St",
    "North Pantry,Food Bank,19104-1234,Philadelphia,PA,,,",
    "Hill Clinic,Clinic,08002,Cherry Hill,NJ,856-555-0101,,",
    "No Zip Outreach,Shelter,,Camden,NJ,,,",
    "Short Row,Shelter,19103",
    "",
])

ZIP_TABLE = {
    "coordinates": {
        "19103": {"latitude": 39.9526, "longitude": -75.1652},
        "19104": {"latitude": 39.9600, "longitude": -75.1960},
        "08002": {"latitude": 39.9340, "longitude": -75.0310},
    }
}

CITY_TABLE = {
    "city_coordinates": {
        "Camden, NJ": {"latitude": 39.9259, "longitude": -75.1196},
        "Philadelphia, PA": {"latitude": 39.9500, "longitude": -75.1600},
    }
}


@pytest.fixture
def data_files(tmp_path):
    csv_path = tmp_path / "orgs.csv"
    csv_path.write_text(SAMPLE_CSV)
    zip_path = tmp_path / "zip_coordinates.json"
    zip_path.write_text(json.dumps(ZIP_TABLE))
    city_path = tmp_path / "city_coordinates.json"
    city_path.write_text(json.dumps(CITY_TABLE))
    return {"csv": csv_path, "zip": zip_path, "city": city_path}


@pytest.fixture
def config(data_files, tmp_path):
    return Config(
        csv_source=str(data_files["csv"]),
        zip_coordinates_source=str(data_files["zip"]),
        city_coordinates_source=str(data_files["city"]),
        cache_db=tmp_path / "cache.db",
        geocode_batch_delay=0,
        geolocation_enabled=False,
    )


def make_org(name, latitude, longitude, service_type="Shelter", zip_code="", state="PA"):
    record = OrganizationRecord(name=name, service_type=service_type, zip=zip_code, state=state)
    source = "zip" if latitude is not None else "none"
    return GeocodedOrganization(record, latitude, longitude, source)


@pytest.fixture
def ringed_orgs():
    """Three organizations 20, 0 and 5 miles north of CENTER (deliberately unsorted)."""
    return [
        make_org("Far", lat_offset(20), CENTER[1]),
        make_org("Here", CENTER[0], CENTER[1]),
        make_org("Near", lat_offset(5), CENTER[1]),
    ]


@pytest.fixture
def table():
    return CoordinateTable(
        zips={k: Coordinate(v["latitude"], v["longitude"]) for k, v in ZIP_TABLE["coordinates"].items()},
        cities={k: Coordinate(v["latitude"], v["longitude"]) for k, v in CITY_TABLE["city_coordinates"].items()},
    )
