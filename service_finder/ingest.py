"""CSV ingestion: raw delimited text -> OrganizationRecord list.

Splitting is naive on the delimiter. Quoted fields are NOT supported: a quoted
value containing a comma is split like any other, which usually shifts the row
and gets it dropped or misaligned. Source files are expected to avoid commas
inside values.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List

import requests

from .errors import LoadFailure
from .models import UNKNOWN, OrganizationRecord

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"\D")

# Ordered header aliases per output field (first non-blank wins)
FIELD_ALIASES = {
    "name": ("name", "organization", "org name"),
    "service_type": ("housing_type", "type", "category", "org type", "service type", "service_type"),
    "zip": ("zip", "zip code", "zipcode"),
    "city": ("city",),
    "state": ("state", "state code"),
    "county": ("county", "county name"),
    "phone": ("phone",),
    "email": ("email",),
    "address": ("address",),
}

FIELD_DEFAULTS = {
    "name": UNKNOWN,
    "service_type": UNKNOWN,
    "zip": "",
    "city": UNKNOWN,
    "state": UNKNOWN,
    "county": "",
    "phone": "",
    "email": "",
    "address": "",
}


def normalize_zip(value: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGIT.sub("", value or "")


def _resolve(row: Dict[str, str], field_name: str) -> str:
    for alias in FIELD_ALIASES[field_name]:
        value = row.get(alias, "")
        if value:
            return value
    return FIELD_DEFAULTS[field_name]


def parse_csv(text: str, require_zip: bool = False, delimiter: str = ",") -> List[OrganizationRecord]:
    """Parse CSV text into records.

    Args:
        text: raw file contents, header row first
        require_zip: drop rows whose normalized zip is empty
        delimiter: field separator

    Returns:
        One OrganizationRecord per accepted row, in file order.
    """
    lines = (text or "").lstrip("\ufeff").splitlines()
    # Header is the first non-empty line
    while lines and not lines[0].strip():
        lines.pop(0)
    if len(lines) < 2:
        logger.warning("CSV file appears to be empty or invalid")
        return []

    headers = [h.strip().lower() for h in lines[0].split(delimiter)]
    records: List[OrganizationRecord] = []
    short_rows = 0
    no_zip_rows = 0

    for line_no, raw in enumerate(lines[1:], start=2):
        line = raw.strip()
        if not line:
            continue
        values = [v.strip() for v in line.split(delimiter)]
        if len(values) < len(headers):
            short_rows += 1
            logger.debug(f"Line {line_no}: {len(values)} fields < {len(headers)} headers, dropped")
            continue

        # Extra trailing fields are ignored; duplicate headers keep the last column
        row = dict(zip(headers, values))

        fields = {name: _resolve(row, name) for name in FIELD_ALIASES}
        fields["zip"] = normalize_zip(fields["zip"])
        if require_zip and not fields["zip"]:
            no_zip_rows += 1
            continue
        records.append(OrganizationRecord(**fields))

    logger.info(
        f"Parsed {len(records)} organizations "
        f"({short_rows} short rows dropped, {no_zip_rows} rows without zip dropped)"
    )
    return records


def fetch_csv(url: str, timeout: int = 30) -> str:
    """Fetch CSV text over HTTP. Any failure is a LoadFailure."""
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Error loading CSV data from {url}: {e}")
        raise LoadFailure(f"Could not load organization data: {e}") from e
    return resp.text


def load_csv_source(source: str, timeout: int = 30) -> str:
    """Return CSV text from a URL or a local file path."""
    if source.startswith(("http://", "https://")):
        return fetch_csv(source, timeout=timeout)
    try:
        return Path(source).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Error reading CSV file {source}: {e}")
        raise LoadFailure(f"Could not load organization data: {e}") from e
