"""External lookup collaborators."""

from .abuseipdb import AbuseIPDBClient, RateLimited
from .geo import IpApiClient

__all__ = ["AbuseIPDBClient", "IpApiClient", "RateLimited"]
