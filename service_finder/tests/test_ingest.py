import pytest
import requests

from service_finder import ingest
from service_finder.errors import LoadFailure
from service_finder.models import OrganizationRecord

from .conftest import SAMPLE_CSV


def test_parse_csv_maps_aliases_and_defaults():
    records = ingest.parse_csv(SAMPLE_CSV)

    assert [r.name for r in records] == ["Harbor House", "North Pantry", "Hill Clinic", "No Zip Outreach"]
    harbor = records[0]
    assert harbor.service_type == "Shelter"
    assert harbor.zip == "19103"
    assert harbor.phone == "215-555-0100"
    assert harbor.email == "info@harbor.org"
    assert harbor.address == "1 Main St"
    assert harbor.county == ""


def test_parse_csv_normalizes_zip_to_digits():
    records = ingest.parse_csv(SAMPLE_CSV)
    assert records[1].zip == "191041234"
    assert records[2].zip == "08002"


def test_parse_csv_alias_order_and_unknown_defaults():
    text = "organization,category,zip code,state code,county name\nAcme Aid,,12345,,Kent\n"
    [record] = ingest.parse_csv(text)
    assert record.name == "Acme Aid"
    assert record.service_type == "Unknown"
    assert record.city == "Unknown"
    assert record.state == "Unknown"
    assert record.zip == "12345"
    assert record.county == "Kent"


def test_first_alias_wins_when_several_present():
    text = "name,organization,type,category\nFirst,Second,Pantry,Food\n"
    [record] = ingest.parse_csv(text)
    assert record.name == "First"
    assert record.service_type == "Pantry"


def test_blank_first_alias_falls_through_to_next():
    text = "name,org name,housing_type,type\n,Backup Name,,Meals\n"
    [record] = ingest.parse_csv(text)
    assert record.name == "Backup Name"
    assert record.service_type == "Meals"


def test_short_rows_dropped_and_extra_fields_ignored():
    text = "name,zip,city\nShort,12345\nLong,12345,Dover,extra,fields\n"
    records = ingest.parse_csv(text)
    assert [r.name for r in records] == ["Long"]
    assert records[0].city == "Dover"


@pytest.mark.parametrize("text", ["", "name,zip,city", "name,zip,city\n", "\n\n"])
def test_degenerate_input_yields_no_records(text):
    assert ingest.parse_csv(text) == []


def test_header_is_trimmed_and_lowercased():
    text = "  NAME , Zip ,CITY\nAcme,12345,Dover\n"
    [record] = ingest.parse_csv(text)
    assert record.name == "Acme"
    assert record.city == "Dover"


def test_leading_blank_lines_and_crlf():
    text = "\r\n\r\nname,zip\r\nAcme,12345\r\n\r\nBeta,54321\r\n"
    records = ingest.parse_csv(text)
    assert [r.zip for r in records] == ["12345", "54321"]


def test_require_zip_policy_drops_zipless_rows():
    accepted = ingest.parse_csv(SAMPLE_CSV)
    strict = ingest.parse_csv(SAMPLE_CSV, require_zip=True)
    assert "No Zip Outreach" in [r.name for r in accepted]
    assert "No Zip Outreach" not in [r.name for r in strict]
    assert len(strict) == len(accepted) - 1


def test_quoted_commas_are_not_handled():
    text = 'name,city,state\n"Smith, Jones Aid",Dover,DE\n'
    [record] = ingest.parse_csv(text)
    assert record.name == '"Smith'
    assert record.city == 'Jones Aid"'


def test_records_are_immutable():
    [record] = ingest.parse_csv("name\nAcme\n")
    assert isinstance(record, OrganizationRecord)
    with pytest.raises(AttributeError):
        record.name = "Other"


def test_parse_logs_summary(caplog):
    with caplog.at_level("INFO"):
        ingest.parse_csv(SAMPLE_CSV)
    assert "Parsed 4 organizations (1 short rows dropped" in " ".join(caplog.messages)


class _Resp:
    def __init__(self, status, text=""):
        self.status_code = status
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_fetch_csv_http_error_is_load_failure(monkeypatch):
    monkeypatch.setattr(ingest.requests, "get", lambda url, timeout: _Resp(404))
    with pytest.raises(LoadFailure):
        ingest.fetch_csv("https://example.com/orgs.csv")


def test_fetch_csv_returns_text(monkeypatch):
    monkeypatch.setattr(ingest.requests, "get", lambda url, timeout: _Resp(200, "name\nAcme\n"))
    assert ingest.load_csv_source("https://example.com/orgs.csv") == "name\nAcme\n"


def test_load_csv_source_missing_file(tmp_path):
    with pytest.raises(LoadFailure):
        ingest.load_csv_source(str(tmp_path / "missing.csv"))


def test_load_csv_source_undecodable_file(tmp_path):
    path = tmp_path / "orgs.csv"
    path.write_bytes(b"name,zip\n\xff\xfeBad,12345\n")
    with pytest.raises(LoadFailure):
        ingest.load_csv_source(str(path))
