"""Runtime configuration.

Everything the analyzer needs (API credential, cache location, timeouts,
retry ceiling) lives on an explicit `AnalyzerConfig` that is passed to
`IpAnalyzer`. `AnalyzerConfig.from_env()` builds one from environment
variables, loading a `.env` file first when present.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_THREAT_TTL_SECONDS = 24 * 3600
DEFAULT_MAX_RATE_LIMIT_RETRIES = 3
DEFAULT_RETRY_AFTER_SECONDS = 60
RATE_LIMIT_GRACE_SECONDS = 5
DEFAULT_PORT = 3001


class ConfigError(Exception):
    """Raised when a configuration value cannot be parsed."""


def default_cache_path() -> str:
    base = os.getenv("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")
    return os.path.join(base, "ip-threat-analyzer", "cache.sqlite")


def parse_ttl(ttl: str) -> int:
    """Parse TTL strings like: 3600, 10m, 24h, 7d."""
    s = ttl.strip().lower()
    if s.isdigit():
        return int(s)

    units = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = s[-1:] if s else ""
    if unit not in units or not s[:-1].isdigit():
        raise ConfigError(f"Invalid TTL: {ttl!r}")
    return int(s[:-1]) * units[unit]


def load_env_files() -> Optional[Path]:
    """Load the first `.env` found (current dir, then home dir)."""
    for env_path in [Path(".env"), Path.home() / ".env", Path.home() / ".ipthreat.env"]:
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded environment from %s", env_path)
            return env_path
    return None


def _int_setting(env: Mapping[str, str], name: str, default: int, *, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class AnalyzerConfig:
    abuseipdb_api_key: Optional[str] = None
    db_path: str = ""
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    threat_ttl_seconds: int = DEFAULT_THREAT_TTL_SECONDS
    max_rate_limit_retries: int = DEFAULT_MAX_RATE_LIMIT_RETRIES
    rate_limit_grace_seconds: int = RATE_LIMIT_GRACE_SECONDS
    max_workers: int = 1
    # Legacy behaviour: bump threat_fetched_at even when cached threat data
    # was reused. Off by default: freshness only moves on a real fetch.
    refresh_threat_timestamp_on_reuse: bool = False
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if not self.db_path:
            object.__setattr__(self, "db_path", default_cache_path())

    @property
    def has_threat_credentials(self) -> bool:
        return bool(self.abuseipdb_api_key)

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, *, load_dotenv_files: bool = True
    ) -> "AnalyzerConfig":
        if env is None:
            if load_dotenv_files:
                load_env_files()
            env = os.environ

        ttl_raw = env.get("IP_THREAT_CACHE_TTL", "24h")
        legacy = env.get("IP_THREAT_LEGACY_TIMESTAMPS", "").strip().lower()

        return cls(
            abuseipdb_api_key=env.get("ABUSEIPDB_API_KEY") or None,
            db_path=env.get("IP_THREAT_DB_PATH") or default_cache_path(),
            timeout=_int_setting(env, "IP_THREAT_TIMEOUT", DEFAULT_TIMEOUT_SECONDS, minimum=1),
            threat_ttl_seconds=parse_ttl(ttl_raw),
            max_rate_limit_retries=_int_setting(
                env, "IP_THREAT_MAX_RATE_LIMIT_RETRIES", DEFAULT_MAX_RATE_LIMIT_RETRIES
            ),
            max_workers=_int_setting(env, "IP_THREAT_MAX_WORKERS", 1, minimum=1),
            refresh_threat_timestamp_on_reuse=legacy in {"1", "true", "yes", "on"},
            port=_int_setting(env, "PORT", DEFAULT_PORT, minimum=1),
        )
