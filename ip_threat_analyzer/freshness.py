"""Cache freshness decision for one IP."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_THREAT_TTL_SECONDS
from .models import CacheRecord


@dataclass(frozen=True)
class FreshnessDecision:
    need_geo_fetch: bool
    need_threat_fetch: bool


def decide(
    record: Optional[CacheRecord],
    *,
    max_age_seconds: float = DEFAULT_THREAT_TTL_SECONDS,
    now: Optional[float] = None,
) -> FreshnessDecision:
    """Decide which lookups must be repeated for a cached IP.

    Geo data has no TTL: once an IP is cached its location is reused. Threat
    data is reused only while younger than `max_age_seconds`.
    """
    if record is None:
        return FreshnessDecision(need_geo_fetch=True, need_threat_fetch=True)

    if now is None:
        now = time.time()

    fetched_at = record.threat_fetched_at
    threat_fresh = fetched_at is not None and (now - fetched_at) < max_age_seconds
    return FreshnessDecision(need_geo_fetch=False, need_threat_fetch=not threat_fresh)
