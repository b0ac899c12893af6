"""Threat classification.

Maps raw geo (ip-api.com) and threat (AbuseIPDB) data to a normalized
`AnalysisResult`. Pure and deterministic: pass `now` to pin the fallback
`lastSeen` timestamp.

Branches, first match wins:

1. geo lookup failed       -> error / unknown
2. threat data present     -> whitelist override, else confidence thresholds
                              and threat type from report categories
3. no threat data          -> proxy/hosting heuristic, else safe
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from .models import (
    AnalysisResult,
    GeoData,
    KnownThreat,
    Status,
    ThreatData,
    ThreatDetails,
    ThreatLevel,
    ThreatTag,
)

GEO_ERROR_MESSAGE = "Geo-IP API Error"
# Used by the orchestrator when ip-api.com cannot be reached at all.
GEO_UNREACHABLE_MESSAGE = "Geo-IP API error"
PROCESSING_ERROR_MESSAGE = "Backend processing error"

# (minimum confidence, status, threat level), highest first.
CONFIDENCE_THRESHOLDS: tuple[tuple[int, Status, ThreatLevel], ...] = (
    (90, "malicious", "critical"),
    (70, "malicious", "high"),
    (40, "suspicious", "medium"),
    (1, "suspicious", "low"),
)

# Confidence/reputation assigned when only geo proxy/hosting flags are known.
GEO_HEURISTIC_CONFIDENCE = 50


def _iso(value: Any) -> Optional[str]:
    """Normalize a timestamp to ISO-8601 UTC; unparseable strings pass through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def location_of(geo: GeoData) -> str:
    return f"{geo.city or 'Unknown'}, {geo.country or 'Unknown'}"


def error_result(ip: str, message: Optional[str] = None) -> AnalysisResult:
    """Result for an IP that could not be analyzed at all."""
    return AnalysisResult(
        ip=ip,
        status="error",
        threat_level="unknown",
        threat_type=message or GEO_ERROR_MESSAGE,
        location="Unknown",
        isp="Unknown",
        confidence=0,
        reputation=0,
        details=ThreatDetails(),
        last_seen=None,
    )


def threat_level_for(confidence: int) -> tuple[Status, ThreatLevel]:
    for minimum, status, level in CONFIDENCE_THRESHOLDS:
        if confidence >= minimum:
            return status, level
    return "safe", "low"


def resolve_threat_tag(categories: list[str]) -> Optional[ThreatTag]:
    """Pick the threat tag for a list of report categories.

    Known threats win by precedence regardless of list order; otherwise the
    first category is used as-is. Empty input yields None.
    """
    lowered = [c.lower() for c in categories]
    for threat in KnownThreat:
        if threat.category in lowered:
            return ThreatTag(known=threat)
    if lowered:
        return ThreatTag.from_category(lowered[0])
    return None


def _apply_threat_data(result: AnalysisResult, threat: ThreatData) -> None:
    confidence = int(threat.abuse_confidence_score or 0)
    result.confidence = confidence
    result.reputation = 100 - confidence

    if threat.is_whitelisted:
        result.status = "safe"
        result.threat_level = "low"
        result.threat_type = "whitelisted"
        result.confidence = 0
        result.reputation = 100
    else:
        result.status, result.threat_level = threat_level_for(confidence)

    details = result.details
    details.categories = [c for c in threat.categories if isinstance(c, str)]

    if not threat.is_whitelisted:
        tag = resolve_threat_tag(details.categories)
        if tag is not None:
            result.threat_type = tag.name
            if tag.known is not None:
                details.flag(tag.known)
        elif confidence > 0:
            result.threat_type = "generic_suspicious"

    if threat.last_reported_at:
        details.last_seen = _iso(threat.last_reported_at)


def _apply_geo_heuristics(result: AnalysisResult, geo: GeoData) -> None:
    if geo.proxy or geo.hosting:
        result.status = "suspicious"
        result.threat_level = "medium"
        result.threat_type = "proxy" if geo.proxy else "hosting"
        result.confidence = GEO_HEURISTIC_CONFIDENCE
        result.reputation = 100 - GEO_HEURISTIC_CONFIDENCE


def classify(
    ip: str,
    geo: GeoData,
    threat: Optional[ThreatData],
    *,
    now: Optional[datetime] = None,
) -> AnalysisResult:
    if geo.failed:
        return error_result(ip, geo.message)

    result = AnalysisResult(
        ip=ip,
        location=location_of(geo),
        isp=geo.isp or "Unknown",
        details=ThreatDetails(proxy=bool(geo.proxy), tor=geo.query == "Tor"),
    )

    if threat is not None:
        _apply_threat_data(result, threat)
    else:
        _apply_geo_heuristics(result, geo)

    if now is None:
        now = datetime.now(timezone.utc)
    result.last_seen = result.details.last_seen or _iso(geo.query_time) or _iso(now)
    return result
