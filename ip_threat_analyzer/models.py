"""Models for ip-threat-analyzer.

We keep the core library lightweight (plain dataclasses, no pydantic).
`AnalysisResult.to_dict()` defines the stable JSON contract consumed by the
web UI: camelCase keys, one object per analyzed IP.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional

Status = Literal["safe", "suspicious", "malicious", "error"]
ThreatLevel = Literal["low", "medium", "high", "critical", "unknown"]

STATUSES: tuple[str, ...] = ("safe", "suspicious", "malicious", "error")


class KnownThreat(str, Enum):
    """Threat categories with a dedicated detail flag.

    Declaration order is the matching precedence.
    """

    MALWARE = "malware"
    PHISHING = "phishing"
    SPAM = "spam"
    BOTNET = "botnet"
    PROXY = "proxy"
    TOR = "tor"

    @property
    def category(self) -> str:
        # AbuseIPDB reports Tor as "Tor Exit Node".
        return "tor exit node" if self is KnownThreat.TOR else self.value


@dataclass(frozen=True)
class ThreatTag:
    """Either a known threat or a sanitized raw category name."""

    known: Optional[KnownThreat] = None
    raw: Optional[str] = None

    @classmethod
    def from_category(cls, category: str) -> "ThreatTag":
        return cls(raw=re.sub(r"\s", "_", category))

    @property
    def name(self) -> str:
        if self.known is not None:
            return self.known.value
        return self.raw or "unknown_category"


@dataclass
class ThreatDetails:
    malware: bool = False
    phishing: bool = False
    spam: bool = False
    botnet: bool = False
    proxy: bool = False
    tor: bool = False
    categories: list[str] = field(default_factory=list)
    last_seen: Optional[str] = None

    def flag(self, threat: KnownThreat) -> None:
        setattr(self, threat.value, True)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "malware": self.malware,
            "phishing": self.phishing,
            "spam": self.spam,
            "botnet": self.botnet,
            "proxy": self.proxy,
            "tor": self.tor,
            "categories": list(self.categories),
        }
        if self.last_seen is not None:
            out["lastSeen"] = self.last_seen
        return out

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ThreatDetails":
        data = data or {}
        categories = data.get("categories") or []
        return cls(
            malware=bool(data.get("malware")),
            phishing=bool(data.get("phishing")),
            spam=bool(data.get("spam")),
            botnet=bool(data.get("botnet")),
            proxy=bool(data.get("proxy")),
            tor=bool(data.get("tor")),
            categories=[c for c in categories if isinstance(c, str)],
            last_seen=data.get("lastSeen"),
        )


@dataclass
class AnalysisResult:
    ip: str
    status: Status = "safe"
    threat_level: ThreatLevel = "low"
    threat_type: str = "none"
    location: str = "Unknown"
    isp: str = "Unknown"
    confidence: int = 0
    reputation: int = 100
    details: ThreatDetails = field(default_factory=ThreatDetails)
    last_seen: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip": self.ip,
            "status": self.status,
            "threatLevel": self.threat_level,
            "threatType": self.threat_type,
            "location": self.location,
            "isp": self.isp,
            "confidence": self.confidence,
            "details": self.details.to_dict(),
            "lastSeen": self.last_seen,
            "reputation": self.reputation,
        }


@dataclass(frozen=True)
class GeoData:
    """Subset of an ip-api.com response."""

    status: str = "success"
    message: Optional[str] = None
    country: Optional[str] = None
    region_name: Optional[str] = None
    city: Optional[str] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    timezone: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    proxy: bool = False
    hosting: bool = False
    query: Optional[str] = None
    # ISO-8601 time of the lookup (only set for cache-rebuilt data).
    query_time: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == "fail"

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "GeoData":
        return cls(
            status=str(payload.get("status") or "success"),
            message=payload.get("message"),
            country=payload.get("country"),
            region_name=payload.get("regionName"),
            city=payload.get("city"),
            isp=payload.get("isp"),
            org=payload.get("org"),
            timezone=payload.get("timezone"),
            lat=_as_float(payload.get("lat")),
            lon=_as_float(payload.get("lon")),
            proxy=bool(payload.get("proxy")),
            hosting=bool(payload.get("hosting")),
            query=payload.get("query"),
        )


@dataclass(frozen=True)
class ThreatData:
    """Normalized AbuseIPDB check payload."""

    abuse_confidence_score: int = 0
    total_reports: int = 0
    categories: tuple[Any, ...] = ()
    last_reported_at: Optional[str] = None
    is_whitelisted: bool = False
    source: str = "AbuseIPDB"


@dataclass(frozen=True)
class CacheRecord:
    ip: str

    # Geo
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    timezone: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    proxy: bool = False
    hosting: bool = False
    tor: bool = False
    geo_fetched_at: Optional[float] = None  # epoch seconds

    # Threat / classification
    status: Optional[str] = None
    threat_level: Optional[str] = None
    threat_type: Optional[str] = None
    confidence: Optional[int] = None
    details: dict[str, Any] = field(default_factory=dict)
    last_seen: Optional[str] = None
    reputation: Optional[int] = None
    threat_fetched_at: Optional[float] = None  # epoch seconds


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
