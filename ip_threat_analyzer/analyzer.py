"""IP threat analyzer - core orchestration.

For each IP: read cache -> decide freshness -> fetch what is missing ->
classify -> write cache. Failures are scoped to one IP; the batch always
returns one result per input, in input order.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Protocol

from .cache import CacheStore
from .classifier import GEO_UNREACHABLE_MESSAGE, PROCESSING_ERROR_MESSAGE, classify, error_result
from .config import AnalyzerConfig
from .freshness import decide
from .models import AnalysisResult, CacheRecord, GeoData, ThreatData

logger = logging.getLogger(__name__)


class GeoLookup(Protocol):
    def lookup(self, ip: str) -> Optional[GeoData]: ...


class ThreatLookup(Protocol):
    def lookup(self, ip: str) -> Optional[ThreatData]: ...


def geo_from_record(record: CacheRecord) -> GeoData:
    """Rebuild geo data from a cache row."""
    query_time = None
    if record.geo_fetched_at is not None:
        query_time = datetime.fromtimestamp(record.geo_fetched_at, tz=timezone.utc).isoformat()
    return GeoData(
        status="success",
        country=record.country,
        region_name=record.region,
        city=record.city,
        isp=record.isp,
        org=record.org,
        timezone=record.timezone,
        lat=record.lat,
        lon=record.lon,
        proxy=record.proxy,
        hosting=record.hosting,
        query="Tor" if record.tor else record.ip,
        query_time=query_time,
    )


def threat_from_record(record: CacheRecord) -> ThreatData:
    details = record.details or {}
    categories = details.get("categories") or []
    return ThreatData(
        abuse_confidence_score=int(record.confidence or 0),
        categories=tuple(c for c in categories if isinstance(c, str)),
        last_reported_at=details.get("lastSeen"),
        is_whitelisted=record.threat_type == "whitelisted",
        source="Cached",
    )


class IpAnalyzer:
    """Drives the per-IP enrichment pipeline.

    All collaborators are injected; nothing is read from module globals.
    With `config.max_workers > 1` IPs are processed on a thread pool. Work on
    the same IP is serialized by a per-IP lock, and the threat client
    serializes its own calls so the rate-limit backoff is shared.
    """

    def __init__(
        self,
        config: AnalyzerConfig,
        store: CacheStore,
        geo: GeoLookup,
        threat: ThreatLookup,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.store = store
        self.geo = geo
        self.threat = threat
        self._clock = clock
        # Entries live only while some caller holds or waits on the IP.
        self._ip_locks: dict[str, threading.Lock] = {}
        self._ip_lock_users: Counter[str] = Counter()
        self._ip_locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "IpAnalyzer":
        from .sources import AbuseIPDBClient, IpApiClient

        if not config.has_threat_credentials:
            logger.warning(
                "ABUSEIPDB_API_KEY is not set; results will use geo-IP heuristics only."
            )
        return cls(
            config,
            CacheStore(config.db_path),
            IpApiClient.from_config(config),
            AbuseIPDBClient.from_config(config),
        )

    @contextmanager
    def _locked(self, ip: str) -> Iterator[None]:
        """Serialize work on one IP; the lock is dropped once unused."""
        with self._ip_locks_guard:
            lock = self._ip_locks.get(ip)
            if lock is None:
                lock = self._ip_locks[ip] = threading.Lock()
            self._ip_lock_users[ip] += 1
        try:
            with lock:
                yield
        finally:
            with self._ip_locks_guard:
                self._ip_lock_users[ip] -= 1
                if self._ip_lock_users[ip] <= 0:
                    del self._ip_lock_users[ip]
                    del self._ip_locks[ip]

    def analyze(self, ips: list[str]) -> list[AnalysisResult]:
        """Analyze IPs; returns one result per input, in input order."""
        if not ips:
            return []

        workers = max(1, int(self.config.max_workers))
        if workers == 1 or len(ips) == 1:
            return [self.analyze_one(ip) for ip in ips]

        results: list[Optional[AnalysisResult]] = [None] * len(ips)

        def _run(index: int, ip: str) -> None:
            results[index] = self.analyze_one(ip)

        with ThreadPoolExecutor(max_workers=min(workers, len(ips))) as executor:
            futures = [executor.submit(_run, i, ip) for i, ip in enumerate(ips)]
            for future in futures:
                future.result()

        return [
            r if r is not None else error_result(ip, PROCESSING_ERROR_MESSAGE)
            for r, ip in zip(results, ips)
        ]

    def analyze_one(self, ip: str) -> AnalysisResult:
        try:
            with self._locked(ip):
                return self._process(ip)
        except Exception:
            logger.exception("Error processing IP %s", ip)
            return error_result(ip, PROCESSING_ERROR_MESSAGE)

    def _process(self, ip: str) -> AnalysisResult:
        record = self.store.get(ip)
        decision = decide(record, max_age_seconds=self.config.threat_ttl_seconds, now=self._clock())

        geo: Optional[GeoData] = None
        threat: Optional[ThreatData] = None

        if record is not None:
            logger.info("IP %s found in cache.", ip)
            geo = geo_from_record(record)
            if not decision.need_threat_fetch:
                threat = threat_from_record(record)

        if decision.need_geo_fetch:
            logger.info("IP %s geo-IP data not in cache, fetching from ip-api.com...", ip)
            geo = self.geo.lookup(ip)
            if geo is None or geo.failed:
                message = geo.message if geo is not None else None
                logger.error("ip-api.com failed for %s: %s", ip, message or "Unknown error")
                return error_result(ip, message or GEO_UNREACHABLE_MESSAGE)

        if geo is None:
            raise RuntimeError(f"no geo data resolved for {ip}")

        if decision.need_threat_fetch:
            logger.info("IP %s threat data not in cache or stale, fetching AbuseIPDB...", ip)
            threat = self.threat.lookup(ip)

        now = self._clock()
        result = classify(ip, geo, threat, now=datetime.fromtimestamp(now, tz=timezone.utc))

        # Threat freshness only moves when new threat data actually arrived,
        # unless the legacy always-refresh behaviour is enabled.
        threat_fetched_at: Optional[float] = None
        fetched_new_threat = decision.need_threat_fetch and threat is not None
        if fetched_new_threat or self.config.refresh_threat_timestamp_on_reuse:
            threat_fetched_at = now

        self.store.upsert(
            CacheRecord(
                ip=ip,
                country=geo.country,
                region=geo.region_name,
                city=geo.city,
                isp=geo.isp,
                org=geo.org,
                timezone=geo.timezone,
                lat=geo.lat,
                lon=geo.lon,
                proxy=geo.proxy,
                hosting=geo.hosting,
                tor=geo.query == "Tor",
                geo_fetched_at=now,
                status=result.status,
                threat_level=result.threat_level,
                threat_type=result.threat_type,
                confidence=result.confidence,
                details=result.details.to_dict(),
                last_seen=result.last_seen,
                reputation=result.reputation,
                threat_fetched_at=threat_fetched_at,
            )
        )
        logger.info("IP %s data cached/updated in ip_cache.", ip)
        return result


def analyze_ips(ips: list[str], config: Optional[AnalyzerConfig] = None) -> list[dict]:
    """Convenience wrapper returning JSON-ready dicts."""
    analyzer = IpAnalyzer.from_config(config or AnalyzerConfig.from_env())
    return [r.to_dict() for r in analyzer.analyze(ips)]
