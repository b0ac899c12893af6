"""
AbuseIPDB - IP address reputation database
Requires API key (free tier: 1000 requests/day)
https://www.abuseipdb.com/
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Optional

from ..config import DEFAULT_RETRY_AFTER_SECONDS, AnalyzerConfig
from ..models import ThreatData
from ..rate_limit import backoff_seconds, headers_to_dict, parse_rate_limit_info
from ..retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

API_URL = "https://api.abuseipdb.com/api/v2/check"
MAX_AGE_IN_DAYS = 90


class RateLimited(Exception):
    """AbuseIPDB answered 429; `delay_seconds` is how long to back off."""

    def __init__(self, ip: str, delay_seconds: float):
        super().__init__(f"AbuseIPDB rate limit exceeded for {ip}")
        self.ip = ip
        self.delay_seconds = delay_seconds


def extract_categories(data: dict[str, Any]) -> list[str]:
    """Flatten reports[].categories[].categoryName, keeping string names only."""
    reports = data.get("reports")
    if not isinstance(reports, list):
        return []

    out: list[str] = []
    for report in reports:
        if not isinstance(report, dict):
            continue
        categories = report.get("categories")
        if not isinstance(categories, list):
            continue
        for cat in categories:
            if isinstance(cat, dict) and isinstance(cat.get("categoryName"), str):
                out.append(cat["categoryName"])
    return out


def parse_check_response(payload: dict[str, Any]) -> Optional[ThreatData]:
    data = payload.get("data")
    if not data or not isinstance(data, dict):
        return None

    score = data.get("abuseConfidenceScore")
    return ThreatData(
        abuse_confidence_score=int(score) if isinstance(score, (int, float)) else 0,
        total_reports=int(data.get("totalReports") or 0),
        categories=tuple(extract_categories(data)),
        last_reported_at=data.get("lastReportedAt"),
        is_whitelisted=bool(data.get("isWhitelisted")),
        source="AbuseIPDB",
    )


def check(ip: str, api_key: str, timeout: int = 30, *, grace_seconds: int = 5) -> Optional[ThreatData]:
    """
    Query the AbuseIPDB check endpoint once.

    Returns:
        ThreatData, or None when the API errors or has no data for the IP.

    Raises:
        RateLimited: on HTTP 429, carrying the delay to wait before retrying.
    """
    params = urllib.parse.urlencode({
        'ipAddress': ip,
        'maxAgeInDays': MAX_AGE_IN_DAYS,
        'verbose': '',
    })
    req = urllib.request.Request(f"{API_URL}?{params}")
    req.add_header('Key', api_key)
    req.add_header('Accept', 'application/json')

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            result = json.loads(response.read().decode('utf-8'))
    except urllib.error.HTTPError as e:
        if e.code == 429:
            info = parse_rate_limit_info(headers_to_dict(e.headers))
            delay = backoff_seconds(
                info,
                default_seconds=DEFAULT_RETRY_AFTER_SECONDS,
                grace_seconds=grace_seconds,
            )
            raise RateLimited(ip, delay) from e
        logger.error("AbuseIPDB API error for %s: HTTP %s %s", ip, e.code, e.reason)
        return None
    except (urllib.error.URLError, OSError, ValueError) as e:
        logger.error("Error fetching AbuseIPDB intelligence for %s: %s", ip, e)
        return None

    if not isinstance(result, dict):
        return None
    return parse_check_response(result)


class AbuseIPDBClient:
    """Threat-lookup collaborator.

    Calls are serialized behind one lock, so concurrent workers share a single
    rate-limit budget: while one caller backs off, the others wait.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: int = 10,
        max_retries: int = 3,
        grace_seconds: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.grace_seconds = grace_seconds
        self._sleep = sleep
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "AbuseIPDBClient":
        return cls(
            config.abuseipdb_api_key,
            timeout=config.timeout,
            max_retries=config.max_rate_limit_retries,
            grace_seconds=config.rate_limit_grace_seconds,
        )

    def lookup(self, ip: str) -> Optional[ThreatData]:
        if not self.api_key:
            logger.debug("No AbuseIPDB key; skipping threat lookup for %s", ip)
            return None
        api_key = self.api_key

        def _delay(e: Exception, attempt: int) -> float:
            delay = getattr(e, "delay_seconds", DEFAULT_RETRY_AFTER_SECONDS)
            logger.warning(
                "AbuseIPDB rate limit exceeded for %s. Retrying in %.0f seconds (retry %d/%d).",
                ip,
                delay,
                attempt,
                self.max_retries,
            )
            return delay

        with self._lock:
            try:
                return retry_call(
                    lambda: check(ip, api_key, self.timeout, grace_seconds=self.grace_seconds),
                    policy=RetryPolicy(retries=self.max_retries),
                    should_retry=lambda e: isinstance(e, RateLimited),
                    delay_for=_delay,
                    sleep=self._sleep,
                )
            except RateLimited:
                logger.error(
                    "AbuseIPDB rate limit still exceeded for %s after %d retries; giving up",
                    ip,
                    self.max_retries,
                )
                return None
