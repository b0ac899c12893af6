"""SQLite cache of per-IP enrichment.

One row per IP address. Geo fields and threat/classification fields carry
their own timestamps (`geo_fetched_at`, `threat_fetched_at`, epoch seconds);
freshness is decided by `ip_threat_analyzer.freshness`, not here.

Writes are a single `INSERT .. ON CONFLICT(ip) DO UPDATE`, so an upsert is
atomic per key. Every call opens its own connection, which keeps the store
usable from worker threads.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from .models import CacheRecord

logger = logging.getLogger(__name__)

_COLUMNS = (
    "ip",
    "country",
    "region",
    "city",
    "isp",
    "org",
    "timezone",
    "lat",
    "lon",
    "proxy",
    "hosting",
    "tor",
    "geo_fetched_at",
    "status",
    "threat_level",
    "threat_type",
    "confidence",
    "details",
    "last_seen",
    "reputation",
    "threat_fetched_at",
)

# Raw ip-api.com flags, kept apart from the classification `details`.
_FLAG_COLUMNS = ("proxy", "hosting", "tor")


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _row_to_record(row: tuple[Any, ...]) -> CacheRecord:
    values = dict(zip(_COLUMNS, row))
    details_json = values.pop("details")
    try:
        details = json.loads(details_json) if details_json else {}
    except ValueError:
        logger.warning("Discarding unreadable cached details for %s", values["ip"])
        details = {}
    if not isinstance(details, dict):
        details = {}
    for flag in _FLAG_COLUMNS:
        values[flag] = bool(values[flag])
    return CacheRecord(details=details, **values)


@dataclass
class CacheStore:
    path: str

    def __post_init__(self) -> None:
        _ensure_parent_dir(self.path)
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ip_cache (
                    ip TEXT PRIMARY KEY,
                    country TEXT,
                    region TEXT,
                    city TEXT,
                    isp TEXT,
                    org TEXT,
                    timezone TEXT,
                    lat REAL,
                    lon REAL,
                    proxy INTEGER NOT NULL DEFAULT 0,
                    hosting INTEGER NOT NULL DEFAULT 0,
                    tor INTEGER NOT NULL DEFAULT 0,
                    geo_fetched_at REAL,
                    status TEXT,
                    threat_level TEXT,
                    threat_type TEXT,
                    confidence INTEGER,
                    details TEXT,
                    last_seen TEXT,
                    reputation INTEGER,
                    threat_fetched_at REAL
                )
                """
            )
            # Rows written before the geo flag columns existed.
            existing = {row[1] for row in con.execute("PRAGMA table_info(ip_cache)")}
            for flag in _FLAG_COLUMNS:
                if flag not in existing:
                    con.execute(f"ALTER TABLE ip_cache ADD COLUMN {flag} INTEGER NOT NULL DEFAULT 0")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=30)

    def get(self, ip: str) -> Optional[CacheRecord]:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM ip_cache WHERE ip = ?",
                (ip,),
            ).fetchone()
        if not row:
            return None
        return _row_to_record(row)

    def upsert(self, record: CacheRecord) -> None:
        """Insert or update the row for `record.ip`.

        A `threat_fetched_at` of None keeps the stored threat timestamp.
        """
        values = (
            record.ip,
            record.country,
            record.region,
            record.city,
            record.isp,
            record.org,
            record.timezone,
            record.lat,
            record.lon,
            int(record.proxy),
            int(record.hosting),
            int(record.tor),
            record.geo_fetched_at,
            record.status,
            record.threat_level,
            record.threat_type,
            record.confidence,
            json.dumps(record.details, ensure_ascii=False),
            record.last_seen,
            record.reputation,
            record.threat_fetched_at,
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._connect() as con:
            con.execute(
                f"""
                INSERT INTO ip_cache ({', '.join(_COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT(ip) DO UPDATE SET
                    country=excluded.country,
                    region=excluded.region,
                    city=excluded.city,
                    isp=excluded.isp,
                    org=excluded.org,
                    timezone=excluded.timezone,
                    lat=excluded.lat,
                    lon=excluded.lon,
                    proxy=excluded.proxy,
                    hosting=excluded.hosting,
                    tor=excluded.tor,
                    geo_fetched_at=excluded.geo_fetched_at,
                    status=excluded.status,
                    threat_level=excluded.threat_level,
                    threat_type=excluded.threat_type,
                    confidence=excluded.confidence,
                    details=excluded.details,
                    last_seen=excluded.last_seen,
                    reputation=excluded.reputation,
                    threat_fetched_at=COALESCE(excluded.threat_fetched_at, ip_cache.threat_fetched_at)
                """,
                values,
            )
            con.commit()

    def count(self) -> int:
        with self._connect() as con:
            (n,) = con.execute("SELECT COUNT(*) FROM ip_cache").fetchone()
        return int(n)