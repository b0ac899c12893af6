"""
ip-api.com - Geo-IP lookup (country, city, ISP, proxy/hosting flags)
Free tier, no API key: http://ip-api.com/docs/api:json
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib.error import URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..config import AnalyzerConfig
from ..models import GeoData

logger = logging.getLogger(__name__)

FIELDS = ",".join(
    [
        "status",
        "message",
        "country",
        "countryCode",
        "region",
        "regionName",
        "city",
        "zip",
        "lat",
        "lon",
        "timezone",
        "isp",
        "org",
        "as",
        "query",
        "proxy",
        "hosting",
    ]
)


def _http_get_json(url: str, *, timeout: int, user_agent: str) -> Any:
    req = Request(url, headers={"User-Agent": user_agent, "Accept": "application/json"})
    with urlopen(req, timeout=timeout) as resp:
        raw = resp.read()
    return json.loads(raw.decode("utf-8"))


def lookup(ip: str, timeout: int = 10) -> Optional[GeoData]:
    """Fetch geo data for one IP.

    Returns GeoData (possibly with status "fail" and a message), or None when
    the service could not be reached or returned something unparseable.
    """
    url = f"http://ip-api.com/json/{quote(ip.strip(), safe='')}?fields={FIELDS}"
    try:
        payload = _http_get_json(url, timeout=timeout, user_agent="ip-threat-analyzer/geo")
    except (URLError, OSError, ValueError) as e:
        logger.error("Error fetching geo-IP data for %s: %s", ip, e)
        return None

    if not isinstance(payload, dict):
        logger.error("Unexpected geo-IP payload for %s: %r", ip, payload)
        return None
    return GeoData.from_api(payload)


class IpApiClient:
    """Geo-lookup collaborator bound to a timeout."""

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "IpApiClient":
        return cls(timeout=config.timeout)

    def lookup(self, ip: str) -> Optional[GeoData]:
        return lookup(ip, timeout=self.timeout)
