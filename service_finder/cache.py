"""SQLite-based geocode cache keyed by zip code."""

import logging
import sqlite3
import time
from pathlib import Path
from typing import Dict, Iterable, Optional

from .ingest import normalize_zip
from .models import Coordinate

logger = logging.getLogger(__name__)


class GeocodeCache:
    """SQLite cache for zip -> coordinate lookups."""

    def __init__(self, db_path: Path, ttl_days: int = 90):
        self.db_path = Path(db_path)
        self.ttl_days = ttl_days
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS geocode_cache (
                zip_code TEXT PRIMARY KEY,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_geocode_expires ON geocode_cache(expires_at)
        """)
        self._conn.commit()

    def get(self, zip_code: str) -> Optional[Coordinate]:
        """Get cached coordinate for zip, or None if not cached / expired."""
        key = normalize_zip(zip_code)
        if not key:
            return None
        row = self._conn.execute(
            "SELECT latitude, longitude FROM geocode_cache WHERE zip_code = ? AND expires_at > ?",
            (key, time.time()),
        ).fetchone()
        if not row:
            return None
        return Coordinate(latitude=row[0], longitude=row[1])

    def get_many(self, zip_codes: Iterable[str]) -> Dict[str, Coordinate]:
        """Return the cached subset of ``zip_codes``."""
        found = {}
        for zip_code in zip_codes:
            coord = self.get(zip_code)
            if coord is not None:
                found[normalize_zip(zip_code)] = coord
        return found

    def put(self, zip_code: str, coord: Coordinate):
        """Cache a geocoded zip."""
        key = normalize_zip(zip_code)
        if not key:
            return
        now = time.time()
        expires = now + (self.ttl_days * 86400)
        self._conn.execute(
            "INSERT OR REPLACE INTO geocode_cache (zip_code, latitude, longitude, created_at, expires_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (key, coord.latitude, coord.longitude, now, expires),
        )
        self._conn.commit()

    def clear_expired(self):
        """Remove all expired entries."""
        deleted = self._conn.execute(
            "DELETE FROM geocode_cache WHERE expires_at <= ?", (time.time(),)
        ).rowcount
        self._conn.commit()
        if deleted:
            logger.info(f"Cache: cleared {deleted} expired entries")

    @property
    def size(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM geocode_cache").fetchone()
        return row[0] if row else 0

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
